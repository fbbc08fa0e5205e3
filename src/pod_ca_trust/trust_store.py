import base64
import logging

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from pod_ca_trust.errors import TrustStoreError

log = logging.getLogger(__name__)

# server-side apply; the API server merges by field manager, no read needed
APPLY_PATCH_CONTENT_TYPE = "application/apply-patch+yaml"

WEBHOOK_FIELD_MANAGER = "pod-ca-trust-webhook"
TLS_INIT_FIELD_MANAGER = "pod-ca-trust-tls-init"


class TrustStore(object):
    """Blind upsert of a namespaced record holding CA material.

    Subclasses decide the record kind (ConfigMap or Secret), how values
    are encoded in it, and how a Pod volume refers to it.
    """

    kind = None

    def __init__(self, core_api, field_manager, force=False):
        self.core_api = core_api
        self.field_manager = field_manager
        self.force = force

    def upsert(self, namespace, name, key, value):
        self.apply(namespace, name, {key: value})

    def apply(self, namespace, name, data, record_type=None):
        body = self.manifest(namespace, name, data, record_type)
        log.debug("Applying %s %s/%s with keys %s", self.kind, namespace, name, sorted(data))
        try:
            self._patch(name, namespace, body,
                        field_manager=self.field_manager,
                        force=self.force,
                        _content_type=APPLY_PATCH_CONTENT_TYPE)
        except ApiException as e:
            raise TrustStoreError("applying {} {}/{}: {} {}".format(
                self.kind, namespace, name, e.status, e.reason))
        except HTTPError as e:
            raise TrustStoreError("applying {} {}/{}: {}".format(self.kind, namespace, name, e))

    def read(self, namespace, name, key):
        try:
            obj = self._read(name, namespace)
        except ApiException as e:
            raise TrustStoreError("reading {} {}/{}: {} {}".format(
                self.kind, namespace, name, e.status, e.reason))
        except HTTPError as e:
            raise TrustStoreError("reading {} {}/{}: {}".format(self.kind, namespace, name, e))
        if obj.data is None or key not in obj.data:
            raise TrustStoreError("{} {}/{} has no key {!r}".format(self.kind, namespace, name, key))
        return self.decode_value(obj.data[key])

    def manifest(self, namespace, name, data, record_type=None):
        raise NotImplementedError

    def volume_source(self, name, optional=False):
        raise NotImplementedError

    def decode_value(self, value):
        raise NotImplementedError

    def _patch(self, name, namespace, body, **kwargs):
        raise NotImplementedError

    def _read(self, name, namespace):
        raise NotImplementedError


class ConfigMapStore(TrustStore):
    kind = "ConfigMap"

    def manifest(self, namespace, name, data, record_type=None):
        if record_type is not None:
            raise ValueError("ConfigMaps have no type, got {!r}".format(record_type))
        return {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": name, "namespace": namespace},
            "data": {key: value.decode("utf-8") for key, value in data.items()},
        }

    def volume_source(self, name, optional=False):
        source = {"name": name}
        if optional:
            source["optional"] = True
        return {"configMap": source}

    def decode_value(self, value):
        return value.encode("utf-8")

    def _patch(self, name, namespace, body, **kwargs):
        return self.core_api.patch_namespaced_config_map(name, namespace, body, **kwargs)

    def _read(self, name, namespace):
        return self.core_api.read_namespaced_config_map(name, namespace)


class SecretStore(TrustStore):
    kind = "Secret"

    def manifest(self, namespace, name, data, record_type=None):
        body = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": name, "namespace": namespace},
            "data": {key: base64.b64encode(value).decode("ascii") for key, value in data.items()},
        }
        if record_type is not None:
            body["type"] = record_type
        return body

    def volume_source(self, name, optional=False):
        source = {"secretName": name}
        if optional:
            source["optional"] = True
        return {"secret": source}

    def decode_value(self, value):
        return base64.b64decode(value)

    def _patch(self, name, namespace, body, **kwargs):
        return self.core_api.patch_namespaced_secret(name, namespace, body, **kwargs)

    def _read(self, name, namespace):
        return self.core_api.read_namespaced_secret(name, namespace)


STORES = {
    "configmap": ConfigMapStore,
    "secret": SecretStore,
}


def new_trust_store(record_kind, core_api, field_manager=WEBHOOK_FIELD_MANAGER, force=False):
    try:
        store_cls = STORES[record_kind]
    except KeyError:
        raise ValueError("unknown trust record kind {!r}".format(record_kind))
    return store_cls(core_api, field_manager, force=force)
