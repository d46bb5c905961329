"""Command line interface for running the API server."""
import logging

import uvicorn

from config import settings_conf

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class UvicornServer:
    """Wrapper for running uvicorn with the configured host and port."""

    def __init__(self, app_path: str = "api.main:app", host: str = "0.0.0.0", port: int = 5000):
        self.config = uvicorn.Config(
            app_path,
            host=host,
            port=port,
            log_level="info"
        )
        self.server = uvicorn.Server(self.config)

    def run(self):
        """Serve until interrupted; uvicorn handles SIGINT and SIGTERM."""
        self.server.run()


def main():
    """Run the API server."""
    logger.info(
        f"Starting FoodShare API on {settings_conf['host']}:{settings_conf['port']} "
        f"({settings_conf['storage_backend']} storage)"
    )
    UvicornServer(host=settings_conf['host'], port=settings_conf['port']).run()


if __name__ == "__main__":
    main()
