import unittest

from pod_ca_trust.config import (InjectionConfig, load_injection_config, load_serve_config,
                                 load_tls_init_config)
from pod_ca_trust.errors import ConfigError, StartupFatal

SERVE_ENV = {
    "CA_SECRET_NAME": "ca-secret",
    "CA_SECRET_NAMESPACE": "pod-ca-trust",
    "SERVE_TLS_CERT": "/tls/tls.crt",
    "SERVE_TLS_KEY": "/tls/tls.key",
}


class TestInjectionConfig(unittest.TestCase):

    def test_defaults(self):
        cfg = load_injection_config({"CA_SECRET_NAME": "ca-secret"})
        self.assertEqual(InjectionConfig(
            record_name="ca-secret",
            record_key="ca.crt",
            record_kind="secret",
            mount_path="/etc/ssl/certs/injected-ca.pem",
            provision=True,
            volume_optional=False,
            skip_sa_with_secrets=True,
        ), cfg)

    def test_overrides(self):
        cfg = load_injection_config({
            "CA_SECRET_NAME": "pod-ca-trust.crt",
            "CA_SECRET_KEY": "bundle.pem",
            "CA_RECORD_KIND": "ConfigMap",
            "CA_BUNDLE_PATH": "/etc/pki/ca.pem",
            "CA_PROVISION": "false",
            "CA_VOLUME_OPTIONAL": "TRUE",
            "SKIP_SA_WITH_SECRETS": "False",
        })
        self.assertEqual("bundle.pem", cfg.record_key)
        self.assertEqual("configmap", cfg.record_kind)
        self.assertEqual("/etc/pki/ca.pem", cfg.mount_path)
        self.assertFalse(cfg.provision)
        self.assertTrue(cfg.volume_optional)
        self.assertFalse(cfg.skip_sa_with_secrets)

    def test_missing_required(self):
        with self.assertRaisesRegex(ConfigError, r"\$CA_SECRET_NAME must be set"):
            load_injection_config({})

    def test_bad_bool(self):
        with self.assertRaisesRegex(ConfigError, r"\$CA_PROVISION"):
            load_injection_config({"CA_SECRET_NAME": "x", "CA_PROVISION": "yes"})

    def test_bad_kind(self):
        with self.assertRaisesRegex(ConfigError, r"\$CA_RECORD_KIND"):
            load_injection_config({"CA_SECRET_NAME": "x", "CA_RECORD_KIND": "vault"})


class TestServeConfig(unittest.TestCase):

    def test_defaults(self):
        cfg = load_serve_config(dict(SERVE_ENV))
        self.assertEqual(":8443", cfg.listen)
        self.assertEqual("pod-ca-trust", cfg.ca_source_namespace)
        self.assertIsNone(cfg.ca_cert_file)
        self.assertEqual(4, cfg.workers)
        self.assertEqual(10, cfg.timeout)
        self.assertFalse(cfg.debug)
        self.assertEqual("ca-secret", cfg.injection.record_name)

    def test_tls_files_required(self):
        env = dict(SERVE_ENV)
        del env["SERVE_TLS_KEY"]
        with self.assertRaisesRegex(StartupFatal, r"\$SERVE_TLS_KEY"):
            load_serve_config(env)

    def test_source_namespace_required(self):
        env = dict(SERVE_ENV)
        del env["CA_SECRET_NAMESPACE"]
        with self.assertRaisesRegex(ConfigError, r"\$CA_SECRET_NAMESPACE"):
            load_serve_config(env)

    def test_ca_cert_file_replaces_source_namespace(self):
        env = dict(SERVE_ENV, CA_CERT_FILE="/ca/ca.crt")
        del env["CA_SECRET_NAMESPACE"]
        cfg = load_serve_config(env)
        self.assertEqual("/ca/ca.crt", cfg.ca_cert_file)
        self.assertIsNone(cfg.ca_source_namespace)

    def test_bad_int(self):
        with self.assertRaisesRegex(ConfigError, r"\$SERVE_WORKERS"):
            load_serve_config(dict(SERVE_ENV, SERVE_WORKERS="many"))


class TestTlsInitConfig(unittest.TestCase):

    def test_defaults(self):
        cfg = load_tls_init_config({"TLS_NAMESPACE": "pod-ca-trust", "TLS_DNS_NAME": "webhook.pod-ca-trust.svc"})
        self.assertEqual("pod-ca-trust-tls", cfg.secret_name)
        self.assertEqual("pod-ca-trust", cfg.webhook_name)
        self.assertEqual("webhook.pod-ca-trust.svc", cfg.dns_name)

    def test_dns_name_required(self):
        with self.assertRaisesRegex(ConfigError, r"\$TLS_DNS_NAME"):
            load_tls_init_config({"TLS_NAMESPACE": "pod-ca-trust"})
