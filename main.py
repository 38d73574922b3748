import sys

import uvicorn
from slack_bolt.adapter.socket_mode import SocketModeHandler

from api import create_app, create_bolt_app
from config import load_settings
from exceptions import ConfigurationError
from logging_config import setup_logger

logger = setup_logger("Main")


def main():
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    if settings.slack_app_token:
        logger.info("⚡️ Starting hiring bot in Socket Mode")
        SocketModeHandler(create_bolt_app(settings), settings.slack_app_token).start()
        return

    app = create_app(settings)
    logger.info(f"⚡️ Hiring bot listening at {settings.api_base_url}/slack/events")
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
