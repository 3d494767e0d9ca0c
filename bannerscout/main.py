"""Entry point and web server initialization."""
import logging
import sys

from bannerscout.config.settings import settings
from bannerscout.web.server import run_server


# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
    handlers=[
        logging.FileHandler("bannerscout.log"),
        logging.StreamHandler(sys.stdout)
    ]
)
logging.getLogger("PIL").setLevel(logging.INFO)
logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    try:
        logger.info("Starting Banner Scout...")

        if not settings.auth_password_hash:
            logger.warning("AUTH_PASSWORD_HASH not set - nobody will be able to log in")
            logger.warning("Generate one with werkzeug.security.generate_password_hash and add it to .env")

        logger.info(f"Default provider: {settings.get_default_provider()}")
        logger.info(f"Cache TTL: {settings.cache_ttl_seconds}s, sweep every {settings.cache_check_period_seconds}s")

        run_server(settings.web_server_host, settings.web_server_port, False)

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        logger.error("Check the error above and verify your .env file is configured correctly")
        sys.exit(1)


if __name__ == "__main__":
    main()
