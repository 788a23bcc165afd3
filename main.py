import logging

import uvicorn

from app import create_app
from config import Settings
from logging_setup import setup_logging

settings = Settings.from_env()
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)

app = create_app(settings)


if __name__ == "__main__":
    logger.info("Starting Task Manager API on %s:%s (%s)", settings.host, settings.port, settings.environment)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
