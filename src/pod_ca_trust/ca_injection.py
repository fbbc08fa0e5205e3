import logging

from flask import Blueprint, Response, current_app, request

from pod_ca_trust.errors import DecodeError
from pod_ca_trust.metrics import INVALID_REQUESTS, OUTCOMES, TOTAL_REQUESTS
from pod_ca_trust.request_helper import responses, validate

bp = Blueprint("ca-injection-webhook", __name__)

log = logging.getLogger(__name__)

# key under which create_app stores the CAInjector in app.config
INJECTOR_KEY = "CA_INJECTOR"


@bp.route('/mutate', methods=['POST'])
def handle_request():
    TOTAL_REQUESTS.inc()
    body = request.get_data()
    log.debug("REQUEST BODY => %s", body.decode('utf-8', 'replace'))

    try:
        admission_request = validate.decode_review(body)
    except DecodeError as e:
        INVALID_REQUESTS.inc()
        log.warning("Rejecting malformed AdmissionReview: %s", e)
        return Response(str(e), status=400, mimetype='text/plain')

    response = get_response(current_app.config[INJECTOR_KEY], admission_request)
    return Response(responses.response_review(response), status=200, mimetype='application/json')


def get_response(injector, admission_request):
    """Run the injector and stamp the request uid on whatever it returns."""
    try:
        response = injector.evaluate(admission_request)
    except Exception as e:
        log.exception("Unexpected error handling admission %s", admission_request.uid)
        OUTCOMES.labels('internal_error').inc()
        response = responses.response_internal_error("unexpected error: {}".format(e))
    response.uid = admission_request.uid
    return response
