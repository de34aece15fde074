"""
ORACLE SENTINEL — Main Entry Point
Runs the API; the monitoring loops start with the application lifespan.
"""
import uvicorn
from oracle_sentinel.config.settings import get_settings
from oracle_sentinel.utils.logger import setup_logging, get_logger

logger = get_logger("main")


def run_api():
    """Run the FastAPI application."""
    settings = get_settings()
    setup_logging()
    logger.info("starting_oracle_sentinel", version=settings.version, port=settings.port)
    uvicorn.run(
        "oracle_sentinel.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run_api()
