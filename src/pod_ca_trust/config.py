import os
from collections import namedtuple

from pod_ca_trust.errors import ConfigError

RECORD_KINDS = ("secret", "configmap")

# Settings the mutation engine needs on every request.
InjectionConfig = namedtuple(
    "InjectionConfig",
    [
        "record_name",
        "record_key",
        "record_kind",
        "mount_path",
        "provision",
        "volume_optional",
        "skip_sa_with_secrets",
    ],
    defaults=("ca.crt", "secret", "/etc/ssl/certs/injected-ca.pem", True, False, True),
)

ServeConfig = namedtuple(
    "ServeConfig",
    [
        "injection",
        "ca_source_namespace",
        "ca_cert_file",
        "listen",
        "tls_cert",
        "tls_key",
        "workers",
        "timeout",
        "debug",
    ],
)

TlsInitConfig = namedtuple(
    "TlsInitConfig",
    ["namespace", "secret_name", "dns_name", "webhook_name", "debug"],
)


def get_required(environ, key):
    if key not in environ:
        raise ConfigError("ENV variable ${} must be set".format(key))
    return environ[key]


def get_with_default(environ, key, default):
    return environ.get(key, default)


def get_bool(environ, key, default):
    value = environ.get(key)
    if value is None:
        return default
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    raise ConfigError("ENV variable ${} must be 'true' or 'false', got {!r}".format(key, value))


def get_int(environ, key, default):
    value = environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError("ENV variable ${} must be an integer, got {!r}".format(key, value))


def load_injection_config(environ=None):
    if environ is None:
        environ = os.environ
    record_kind = get_with_default(environ, "CA_RECORD_KIND", "secret").lower()
    if record_kind not in RECORD_KINDS:
        raise ConfigError("ENV variable $CA_RECORD_KIND must be one of {}, got {!r}".format(
            ", ".join(RECORD_KINDS), record_kind))
    return InjectionConfig(
        record_name=get_required(environ, "CA_SECRET_NAME"),
        record_key=get_with_default(environ, "CA_SECRET_KEY", "ca.crt"),
        record_kind=record_kind,
        mount_path=get_with_default(environ, "CA_BUNDLE_PATH", "/etc/ssl/certs/injected-ca.pem"),
        provision=get_bool(environ, "CA_PROVISION", True),
        volume_optional=get_bool(environ, "CA_VOLUME_OPTIONAL", False),
        skip_sa_with_secrets=get_bool(environ, "SKIP_SA_WITH_SECRETS", True),
    )


def load_serve_config(environ=None):
    if environ is None:
        environ = os.environ
    injection = load_injection_config(environ)
    ca_cert_file = environ.get("CA_CERT_FILE")
    # the source namespace is only needed when the CA is read from the cluster
    if ca_cert_file:
        ca_source_namespace = environ.get("CA_SECRET_NAMESPACE")
    else:
        ca_source_namespace = get_required(environ, "CA_SECRET_NAMESPACE")
    return ServeConfig(
        injection=injection,
        ca_source_namespace=ca_source_namespace,
        ca_cert_file=ca_cert_file,
        listen=get_with_default(environ, "LISTEN", ":8443"),
        tls_cert=get_required(environ, "SERVE_TLS_CERT"),
        tls_key=get_required(environ, "SERVE_TLS_KEY"),
        workers=get_int(environ, "SERVE_WORKERS", 4),
        timeout=get_int(environ, "SERVE_TIMEOUT", 10),
        debug=get_bool(environ, "DEBUG", False),
    )


def load_tls_init_config(environ=None):
    if environ is None:
        environ = os.environ
    return TlsInitConfig(
        namespace=get_required(environ, "TLS_NAMESPACE"),
        secret_name=get_with_default(environ, "TLS_SECRET_NAME", "pod-ca-trust-tls"),
        dns_name=get_required(environ, "TLS_DNS_NAME"),
        webhook_name=get_with_default(environ, "WEBHOOK_NAME", "pod-ca-trust"),
        debug=get_bool(environ, "DEBUG", False),
    )
