import flask
import prometheus_client
from prometheus_client import Counter

bp = flask.Blueprint("metrics", __name__)

# send metrics in text format using 0.0.4 version
CONTENT_TYPE_LATEST = str('text/plain; version=0.0.4; charset=utf-8')

TOTAL_REQUESTS = Counter('webhook_ca_injection_total',
                         'The total number of CA injection admission requests')
INVALID_REQUESTS = Counter('webhook_ca_injection_invalid',
                           'The total number of admission requests rejected with HTTP 400')
OUTCOMES = Counter('webhook_ca_injection_outcomes',
                   'Terminal outcomes of CA injection admission requests',
                   ['outcome'])
PROVISIONED = Counter('webhook_ca_injection_provisioned',
                      'The total number of trust record upserts')


@bp.route('/metrics')
def metrics():
    return flask.Response(prometheus_client.generate_latest(),
                          mimetype=CONTENT_TYPE_LATEST)


@bp.route('/healthz')
def healthz():
    return flask.Response('ok', mimetype='text/plain')
