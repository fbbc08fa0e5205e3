from gunicorn.app.base import BaseApplication

access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" "pid=%(p)s"'


def bind_address(listen):
    # ":8443" means all interfaces
    if listen.startswith(":"):
        return "0.0.0.0" + listen
    return listen


def gunicorn_settings(serve_config):
    return {
        "bind": bind_address(serve_config.listen),
        "workers": serve_config.workers,
        "timeout": serve_config.timeout,
        "graceful_timeout": serve_config.timeout,
        "certfile": serve_config.tls_cert,
        "keyfile": serve_config.tls_key,
        "accesslog": "-",
        "access_log_format": access_log_format,
        "loglevel": "debug" if serve_config.debug else "info",
    }


class WebhookServer(BaseApplication):
    """Serve the webhook over HTTPS with gunicorn.

    `app_factory` is called once per worker so every worker builds its
    own API clients after the fork.
    """

    def __init__(self, app_factory, serve_config):
        self.app_factory = app_factory
        self.serve_config = serve_config
        super().__init__()

    def load_config(self):
        for key, value in gunicorn_settings(self.serve_config).items():
            self.cfg.set(key, value)

    def load(self):
        return self.app_factory()
