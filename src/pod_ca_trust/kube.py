import logging

from kubernetes import config
from kubernetes.config.config_exception import ConfigException

from pod_ca_trust.errors import KubeConfigError

log = logging.getLogger(__name__)


def kube_auth():
    """Load credentials for the Kubernetes API.

    Inside a cluster the serviceaccount token is used; outside of one
    (local development) we fall back to ~/.kube/config.
    """
    try:
        config.load_incluster_config()
        return
    except ConfigException as c:
        log.debug("ConfigException in load_incluster_config(): %s", c)

    try:
        config.load_kube_config()
    except (ConfigException, OSError) as c:
        raise KubeConfigError("could not load Kubernetes credentials: {}".format(c))
