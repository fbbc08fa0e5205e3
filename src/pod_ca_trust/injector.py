import copy
import logging

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from pod_ca_trust.errors import PodDecodeError, TrustStoreError
from pod_ca_trust.metrics import OUTCOMES, PROVISIONED
from pod_ca_trust.patch import diff
from pod_ca_trust.request_helper import responses

log = logging.getLogger(__name__)

VOLUME_NAME = "injected-ca"
VOLUME_MOUNT_NAME = VOLUME_NAME

POD_KIND = {"group": "", "version": "v1", "kind": "Pod"}

WRONG_TYPE_WARNING = "wrong object type sent to the webhook, ignored"


def is_pod(kind):
    return (kind.get("group") or "", kind.get("version"), kind.get("kind")) == \
        (POD_KIND["group"], POD_KIND["version"], POD_KIND["kind"])


def _check_list(parent, key, where):
    value = parent.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise PodDecodeError("{}.{} must be a list, got {}".format(where, key, type(value).__name__))
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            raise PodDecodeError("{}.{}[{}] must be an object, got {}".format(
                where, key, i, type(item).__name__))
    return value


def decode_pod(obj):
    """Check that `obj` has the Pod shape the mutation relies on.

    The Pod stays a plain JSON tree; only the parts we read or write are
    validated. Raises PodDecodeError describing the first problem found.
    """
    if not isinstance(obj, dict):
        raise PodDecodeError("object must be a JSON object, got {}".format(type(obj).__name__))
    metadata = obj.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise PodDecodeError("metadata must be an object, got {}".format(type(metadata).__name__))
    spec = obj.get("spec")
    if not isinstance(spec, dict):
        raise PodDecodeError("spec must be an object, got {}".format(type(spec).__name__))

    _check_list(spec, "volumes", "spec")
    for key in ("containers", "initContainers"):
        for i, container in enumerate(_check_list(spec, key, "spec")):
            _check_list(container, "volumeMounts", "spec.{}[{}]".format(key, i))

    for key in ("serviceAccountName", "serviceAccount"):
        value = spec.get(key)
        if value is not None and not isinstance(value, str):
            raise PodDecodeError("spec.{} must be a string, got {}".format(key, type(value).__name__))
    return obj


def pod_name_for_logs(pod):
    metadata = pod.get("metadata") or {}
    name = metadata.get("name")
    if not name:
        name = (metadata.get("generateName") or "") + "???"
    return name


def service_account_name(pod):
    spec = pod["spec"]
    return spec.get("serviceAccountName") or spec.get("serviceAccount")


def upsert_named(items, entry):
    """Replace the item named like `entry` in place, or append it."""
    for i, item in enumerate(items):
        if item.get("name") == entry["name"]:
            items[i] = entry
            return
    items.append(entry)


class CAInjector(object):
    """Mounts a CA certificate record into every container of a Pod.

    `config` is an InjectionConfig, `ca_cert` the CA PEM bytes copied into
    each namespace, `store` the TrustStore for the configured record kind.
    `core_api` is only used to look up service accounts.
    """

    def __init__(self, config, ca_cert, store, core_api=None):
        self.config = config
        self.ca_cert = ca_cert
        self.store = store
        self.core_api = core_api

    def evaluate(self, request):
        if not is_pod(request.kind):
            OUTCOMES.labels('ignored').inc()
            return responses.response_allow(warnings=[WRONG_TYPE_WARNING])

        try:
            pod = decode_pod(request.object)
        except PodDecodeError as e:
            log.error("Could not decode Pod in admission %s: %s", request.uid, e)
            OUTCOMES.labels('bad_request').inc()
            return responses.response_bad_request(str(e))

        metadata = pod.get("metadata") or {}
        namespace = request.namespace or metadata.get("namespace", "")
        pod_name = pod_name_for_logs(pod)

        if self.config.skip_sa_with_secrets:
            sa_name = service_account_name(pod)
            if sa_name:
                try:
                    sa = self.core_api.read_namespaced_service_account(sa_name, namespace)
                except ApiException as e:
                    return self._internal_error('reading service account "{}/{}": {} {}'.format(
                        namespace, sa_name, e.status, e.reason))
                except HTTPError as e:
                    return self._internal_error('reading service account "{}/{}": {}'.format(
                        namespace, sa_name, e))
                if sa.secrets:
                    msg = 'Pod "{}/{}" uses service account "{}" which already has secrets, CA injection skipped'.format(
                        namespace, pod_name, sa_name)
                    log.info(msg)
                    OUTCOMES.labels('skipped').inc()
                    return responses.response_allow(warnings=[msg])

        if self.config.provision and not request.dry_run:
            log.debug('Applying CA %s "%s" in %s', self.store.kind, self.config.record_name, namespace)
            try:
                self.store.upsert(namespace, self.config.record_name, self.config.record_key, self.ca_cert)
            except TrustStoreError as e:
                return self._internal_error("applying CA {}: {}".format(self.store.kind, e))
            PROVISIONED.inc()

        mutated = copy.deepcopy(pod)
        self.apply_volume(mutated)
        self.apply_volume_mounts(mutated)

        try:
            ops = diff(pod, mutated)
        except Exception as e:
            return self._internal_error("generating patch: {}".format(e))

        if ops is None:
            log.info('Pod "%s/%s" unchanged.', namespace, pod_name)
            OUTCOMES.labels('unchanged').inc()
            return responses.response_allow()

        log.info('Pod "%s/%s" patched.', namespace, pod_name)
        OUTCOMES.labels('patched').inc()
        return responses.response_patch(ops)

    def ca_volume(self):
        volume = {"name": VOLUME_NAME}
        volume.update(self.store.volume_source(self.config.record_name, optional=self.config.volume_optional))
        return volume

    def ca_volume_mount(self):
        return {
            "name": VOLUME_MOUNT_NAME,
            "readOnly": True,
            "mountPath": self.config.mount_path,
            "subPath": self.config.record_key,
        }

    def apply_volume(self, pod):
        spec = pod["spec"]
        if spec.get("volumes") is None:
            spec["volumes"] = []
        upsert_named(spec["volumes"], self.ca_volume())

    def apply_volume_mounts(self, pod):
        spec = pod["spec"]
        for key in ("containers", "initContainers"):
            for container in spec.get(key) or []:
                if container.get("volumeMounts") is None:
                    container["volumeMounts"] = []
                upsert_named(container["volumeMounts"], self.ca_volume_mount())

    def _internal_error(self, msg):
        log.error(msg)
        OUTCOMES.labels('internal_error').inc()
        return responses.response_internal_error(msg)
