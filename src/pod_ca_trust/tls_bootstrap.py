"""Provision the webhook's own self-signed TLS identity.

Runs once before the server starts: generate a key pair, store it in a
kubernetes.io/tls Secret the server mounts, then make the
MutatingWebhookConfiguration trust that certificate. The certificate is
self-signed, so it is its own CA bundle.
"""
import base64
import datetime
import logging

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from pod_ca_trust.errors import BootstrapError, TrustStoreError
from pod_ca_trust.trust_store import TLS_INIT_FIELD_MANAGER, SecretStore

log = logging.getLogger(__name__)

CERTIFICATE_VALIDITY = datetime.timedelta(days=10 * 365)
COMMON_NAME = "pod-ca-trust-webhook"

SECRET_TYPE_TLS = "kubernetes.io/tls"
TLS_KEY_KEY = "tls.key"
TLS_CERT_KEY = "tls.crt"
CA_CERT_KEY = "ca.crt"

CA_BUNDLE_PATH = "/webhooks/0/clientConfig/caBundle"
JSON_PATCH_CONTENT_TYPE = "application/json-patch+json"


def generate_key_pair(dns_name, now=None):
    """Return (private key PEM, certificate PEM) for a server on `dns_name`."""
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)

    private_key = ec.generate_private_key(ec.SECP521R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, COMMON_NAME)])

    builder = x509.CertificateBuilder()
    builder = builder.subject_name(name)
    builder = builder.issuer_name(name)
    # a single issuance is assumed, so the serial never needs to differ
    builder = builder.serial_number(1)
    builder = builder.not_valid_before(now)
    builder = builder.not_valid_after(now + CERTIFICATE_VALIDITY)
    builder = builder.public_key(private_key.public_key())
    builder = builder.add_extension(
        x509.SubjectAlternativeName([x509.DNSName(dns_name)]),
        critical=False,
    )
    builder = builder.add_extension(
        x509.KeyUsage(
            digital_signature=True,
            content_commitment=False,
            key_encipherment=True,
            data_encipherment=False,
            key_agreement=False,
            key_cert_sign=False,
            crl_sign=False,
            encipher_only=False,
            decipher_only=False,
        ),
        critical=True,
    )
    builder = builder.add_extension(
        x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]),
        critical=False,
    )
    builder = builder.add_extension(
        x509.BasicConstraints(ca=False, path_length=None), critical=True
    )

    certificate = builder.sign(private_key=private_key, algorithm=hashes.SHA512())

    return (
        private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        ),
        certificate.public_bytes(serialization.Encoding.PEM),
    )


def ca_bundle_patch(cert_pem):
    return [{
        "op": "replace",
        "path": CA_BUNDLE_PATH,
        "value": base64.b64encode(cert_pem).decode("ascii"),
    }]


def bootstrap(namespace, record_name, registration_name, dns_name, store=None, admission_api=None):
    """Write a fresh TLS Secret, then point the webhook registration at it.

    Both writes are idempotent, so after a BootstrapError the whole
    function can simply be run again.
    """
    if store is None:
        store = SecretStore(client.CoreV1Api(), TLS_INIT_FIELD_MANAGER, force=True)
    if admission_api is None:
        admission_api = client.AdmissionregistrationV1Api()

    log.info("Generating TLS key pair for %s", dns_name)
    key_pem, cert_pem = generate_key_pair(dns_name)

    log.info('Writing TLS Secret "%s/%s"', namespace, record_name)
    try:
        store.apply(namespace, record_name, {
            TLS_KEY_KEY: key_pem,
            TLS_CERT_KEY: cert_pem,
            CA_CERT_KEY: cert_pem,
        }, record_type=SECRET_TYPE_TLS)
    except TrustStoreError as e:
        raise BootstrapError("writing the TLS Secret", e)

    log.info('Updating caBundle of mutatingwebhookconfiguration "%s"', registration_name)
    try:
        admission_api.patch_mutating_webhook_configuration(
            registration_name,
            ca_bundle_patch(cert_pem),
            field_manager=TLS_INIT_FIELD_MANAGER,
            _content_type=JSON_PATCH_CONTENT_TYPE,
        )
    except ApiException as e:
        raise BootstrapError("patching the webhook caBundle", "{} {}".format(e.status, e.reason))
    except HTTPError as e:
        raise BootstrapError("patching the webhook caBundle", e)

    return cert_pem
