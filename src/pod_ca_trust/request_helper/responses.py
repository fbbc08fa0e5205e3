import base64
import json

from pod_ca_trust.patch import to_json

API_VERSION = 'admission.k8s.io/v1'
PATCH_TYPE_JSON_PATCH = 'JSONPatch'


class AdmissionResponse(object):
    """The inner `response` of an AdmissionReview.

    At most one of `result` (a denial) and `patch` is set.
    """

    def __init__(self, allowed, result=None, patch=None, warnings=None, uid=''):
        if result is not None and patch is not None:
            raise ValueError("a response carries either a result or a patch, not both")
        self.uid = uid
        self.allowed = allowed
        self.result = result
        self.patch = patch
        self.patch_type = PATCH_TYPE_JSON_PATCH if patch is not None else None
        self.warnings = warnings

    def to_dict(self):
        body = {
            'uid': self.uid,
            'allowed': self.allowed,
        }
        if self.result is not None:
            body['status'] = self.result
        if self.patch is not None:
            body['patchType'] = self.patch_type
            body['patch'] = base64.b64encode(
                to_json(self.patch).encode('utf-8')).decode('ascii')
        if self.warnings:
            body['warnings'] = list(self.warnings)
        return body


def status_failure(reason, code, msg):
    return {
        'status': 'Failure',
        'reason': reason,
        'code': code,
        'message': msg,
    }


def response_allow(warnings=None):
    return AdmissionResponse(allowed=True, warnings=warnings)


def response_patch(ops):
    return AdmissionResponse(allowed=True, patch=ops)


def response_bad_request(msg):
    return AdmissionResponse(allowed=False, result=status_failure('BadRequest', 400, msg))


def response_internal_error(msg):
    return AdmissionResponse(allowed=False, result=status_failure('InternalError', 500, msg))


def response_review(response):
    body = {
        'apiVersion': API_VERSION,
        'kind': 'AdmissionReview',
        'response': response.to_dict(),
    }
    return json.dumps(body)
