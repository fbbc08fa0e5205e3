import json
from collections import namedtuple

from pod_ca_trust.errors import DecodeError

AdmissionRequest = namedtuple(
    "AdmissionRequest",
    ["uid", "kind", "namespace", "name", "object", "dry_run"],
)


def validate_request_structure(request_json):
    """Validate the request structure.
    """
    if not isinstance(request_json, dict):
        return False
    return request_json.get('kind') == "AdmissionReview"


def decode_review(body):
    """Decode an AdmissionReview envelope into an AdmissionRequest.

    Raises DecodeError when the body is not JSON, not an AdmissionReview,
    has no inner request, or names its kind with something other than an
    object.
    """
    try:
        review = json.loads(body)
    except ValueError as e:
        raise DecodeError(str(e))

    if not validate_request_structure(review):
        raise DecodeError("Body is not an AdmissionReview")

    req = review.get('request')
    if not isinstance(req, dict):
        raise DecodeError("Missing request property")

    kind = req.get('kind') or {}
    if not isinstance(kind, dict):
        raise DecodeError("request.kind must be an object, got {}".format(type(kind).__name__))

    return AdmissionRequest(
        uid=req.get('uid', ''),
        kind=kind,
        namespace=req.get('namespace', ''),
        name=req.get('name', ''),
        object=req.get('object'),
        dry_run=bool(req.get('dryRun')),
    )
