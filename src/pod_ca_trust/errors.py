class DecodeError(Exception):
    """The AdmissionReview envelope could not be decoded."""


class PodDecodeError(Exception):
    """The object embedded in an admission request is not a usable Pod."""


class TrustStoreError(Exception):
    """Writing or reading a trust material record failed."""


class StartupFatal(Exception):
    """Raised for conditions that must stop the process before it serves."""


class ConfigError(StartupFatal):
    pass


class KubeConfigError(StartupFatal):
    pass


class BootstrapError(StartupFatal):
    def __init__(self, step, cause):
        super().__init__("TLS bootstrap failed while {}: {}".format(step, cause))
        self.step = step
        self.cause = cause
