"""
Development entrypoint: ``python -m api``.
Use a WSGI server (gunicorn) with ``api:create_app()`` in production.
"""
import logging
import os

from . import create_app

logger = logging.getLogger(__name__)

app = create_app()

if __name__ == "__main__":
    host = os.getenv("FLASK_RUN_HOST", "127.0.0.1")
    port = int(os.getenv("FLASK_RUN_PORT", "8000"))
    debug = os.getenv("FLASK_DEBUG", str(app.config.get("DEBUG", False))).lower() in ("1", "true", "yes")
    logger.info("Starting token auth API on %s:%s (env=%s)", host, port, app.config.get("APP_ENV"))
    app.run(host=host, port=port, debug=debug)
