#!/usr/bin/env python3

# Entry point: either provision the webhook's TLS identity and exit, or
# serve the CA injection webhook until killed.

import argparse
import logging
import sys

from cryptography import x509
from kubernetes import client

from pod_ca_trust import create_app
from pod_ca_trust.config import load_serve_config, load_tls_init_config
from pod_ca_trust.errors import ConfigError, StartupFatal, TrustStoreError
from pod_ca_trust.injector import CAInjector
from pod_ca_trust.kube import kube_auth
from pod_ca_trust.server import WebhookServer
from pod_ca_trust.tls_bootstrap import bootstrap
from pod_ca_trust.trust_store import new_trust_store

log = logging.getLogger("pod_ca_trust")

LOG_FORMAT = "[pid=%(process)d] %(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Mutating webhook injecting a CA certificate into Pods")
    parser.add_argument('--tls-init', action='store_true', dest='tls_init',
                        help='Generate the webhook TLS Secret, register its CA bundle with the '
                             'MutatingWebhookConfiguration and exit')
    return parser.parse_args(argv)


def set_debug(debug):
    logging.getLogger().setLevel(logging.DEBUG if debug else logging.INFO)


def check_ca_pem(data, source):
    """Fail startup unless `data` is UTF-8 text holding PEM certificates."""
    try:
        data.decode("utf-8")
        x509.load_pem_x509_certificates(data)
    except ValueError as e:
        raise ConfigError("CA certificate from {} is not a PEM certificate: {}".format(source, e))
    return data


def load_ca_cert(serve_config, store):
    """Load the CA PEM once; it is never refreshed while serving."""
    if serve_config.ca_cert_file:
        try:
            with open(serve_config.ca_cert_file, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise ConfigError("reading $CA_CERT_FILE: {}".format(e))
        return check_ca_pem(data, serve_config.ca_cert_file)
    injection = serve_config.injection
    try:
        data = store.read(serve_config.ca_source_namespace, injection.record_name, injection.record_key)
    except TrustStoreError as e:
        raise StartupFatal("loading CA certificate: {}".format(e))
    return check_ca_pem(data, "{} {}/{}".format(store.kind, serve_config.ca_source_namespace, injection.record_name))


def tls_init():
    cfg = load_tls_init_config()
    set_debug(cfg.debug)
    kube_auth()
    bootstrap(cfg.namespace, cfg.secret_name, cfg.webhook_name, cfg.dns_name)
    log.info('TLS Secret "%s/%s" written and trusted by "%s"', cfg.namespace, cfg.secret_name, cfg.webhook_name)


def serve():
    cfg = load_serve_config()
    set_debug(cfg.debug)
    kube_auth()
    injection = cfg.injection
    ca_cert = load_ca_cert(cfg, new_trust_store(injection.record_kind, client.CoreV1Api()))

    def app_factory():
        core_api = client.CoreV1Api()
        store = new_trust_store(injection.record_kind, core_api)
        return create_app(CAInjector(injection, ca_cert, store, core_api=core_api))

    log.info("Listening on %r", cfg.listen)
    WebhookServer(app_factory, cfg).run()


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    try:
        if args.tls_init:
            tls_init()
        else:
            serve()
    except StartupFatal as e:
        log.critical("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
