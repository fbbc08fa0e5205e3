from flask import Flask


def create_app(injector):
    """Build the webhook application around a ready CAInjector."""
    app = Flask(__name__, instance_relative_config=True)

    from pod_ca_trust import ca_injection
    app.config[ca_injection.INJECTOR_KEY] = injector
    app.register_blueprint(ca_injection.bp)

    from pod_ca_trust import metrics
    app.register_blueprint(metrics.bp)

    return app
