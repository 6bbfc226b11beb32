"""
Production entry point for the incident status page.
"""

import logging
import os
import sys
from dotenv import load_dotenv

from infrastructure.config import Settings

logger = logging.getLogger(__name__)


def configure_production_logging(settings: Settings) -> None:
    """Configure production-grade logging for Gunicorn deployment."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # Reduce third-party library noise
    for name in ('requests', 'urllib3', 'apscheduler'):
        logging.getLogger(name).setLevel(logging.WARNING)


def gunicorn_options(settings: Settings) -> dict:
    """Gunicorn settings, tunable through GUNICORN_* environment variables."""
    return {
        'bind': f'{settings.host}:{settings.port}',
        'workers': int(os.environ.get('GUNICORN_WORKERS', 2)),
        'worker_class': 'sync',
        'max_requests': 1000,
        'max_requests_jitter': 100,
        'timeout': int(os.environ.get('GUNICORN_TIMEOUT', 30)),
        'keepalive': int(os.environ.get('GUNICORN_KEEPALIVE', 2)),
        'preload_app': True,
        'accesslog': '-',
        'errorlog': '-',
        'loglevel': settings.log_level.lower(),
        'capture_output': True,
    }


def main():
    """Production application entry point with Gunicorn WSGI server."""
    try:
        load_dotenv()
        settings = Settings.from_env(load_dotenv_file=False)
        configure_production_logging(settings)

        options = gunicorn_options(settings)
        logger.info(f"Starting status page on {options['bind']} with {options['workers']} workers, "
                    f"backend {settings.api_url}")

        from gunicorn.app.base import BaseApplication
        from presentation.web.app import create_app

        class StatusPageApplication(BaseApplication):
            def __init__(self, app, options=None):
                self.options = options or {}
                self.application = app
                super().__init__()

            def load_config(self):
                for key, value in self.options.items():
                    if key in self.cfg.settings and value is not None:
                        self.cfg.set(key.lower(), value)

            def load(self):
                return self.application

        StatusPageApplication(create_app(settings=settings), options).run()

    except Exception as e:
        logger.exception(f"Application failed to start: {str(e)}")
        sys.exit(1)


if __name__ == '__main__':
    main()
