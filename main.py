#!/usr/bin/env python3
"""Main entry point for the Podium debate engine server."""

import logging
import os
import sys
from pathlib import Path

from podium.engine.config import AppConfig, get_default_config
from podium.engine.web import create_app


def setup_logging(level: str = "INFO"):
    """Configure logging for the web server."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Suppress noisy third-party loggers
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def print_usage():
    """Print usage information for local development."""
    print("Podium Debate Engine")
    print("=" * 40)
    print("   python main.py --web                 start the API server")
    print("   python main.py --web --config FILE   use a specific config file")
    print()


def load_config() -> AppConfig:
    if "--config" in sys.argv:
        index = sys.argv.index("--config")
        if index + 1 >= len(sys.argv):
            print("--config needs a file path")
            sys.exit(2)
        return AppConfig.load_from_file(Path(sys.argv[index + 1]))
    return get_default_config()


def start_web_server():
    """Start the FastAPI web server."""
    config = load_config()
    setup_logging(config.system.log_level)

    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    print("Starting Podium Debate Engine...")
    print(f"API Documentation: http://localhost:{port}/docs")

    uvicorn.run(
        create_app(config=config),
        host="0.0.0.0",
        port=port,
        log_level="info",
        access_log=True,
    )


def main():
    """Main entry point."""
    # Production environments (Railway, Docker, Heroku) start the server directly
    is_production = any(
        [
            "RAILWAY_ENVIRONMENT" in os.environ,
            "PORT" in os.environ,
            "DYNO" in os.environ,
            os.environ.get("ENVIRONMENT") == "production",
        ]
    )

    if is_production or "--web" in sys.argv:
        start_web_server()
    else:
        print_usage()


if __name__ == "__main__":
    main()
