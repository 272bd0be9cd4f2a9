"""Main entry point for Agent Bridge."""

import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from agent_bridge.api.app import create_fastapi_app
from agent_bridge.app import Application
from agent_bridge.config import ConfigError, Settings
from agent_bridge.logging_config import get_logger, setup_logging


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    setup_logging()
    logger = get_logger("main")

    settings = Settings.from_env()
    try:
        settings.validate()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logger.info(f"AI provider: {settings.ai_provider}")
    logger.info(f"Workspace: {settings.workspace}")
    if settings.ai_provider == "claude":
        base_url = os.getenv("ANTHROPIC_BASE_URL")
        logger.info(f"Anthropic API: {base_url or 'default endpoint'}")

    app = create_fastapi_app(Application(settings))

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
