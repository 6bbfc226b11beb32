"""
Main entry point for the incident status page.
"""

import logging
from dotenv import load_dotenv

from infrastructure.config import Settings

logger = logging.getLogger(__name__)

def main():
    """Main application entry point."""
    try:
        # Load environment variables from .env file if present
        load_dotenv()
        settings = Settings.from_env(load_dotenv_file=False)

        logging.basicConfig(
            level=getattr(logging, settings.log_level, logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.StreamHandler(),
                logging.FileHandler('status_page.log')
            ]
        )

        from presentation.web.app import create_app

        app = create_app(settings=settings)
        app.run(host=settings.host, port=settings.port, debug=settings.debug)

    except Exception as e:
        logger.exception(f"Application failed to start: {str(e)}")


if __name__ == '__main__':
    main()
