"""Main entry point for resultwatch."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from resultwatch.api import create_fastapi_app
from resultwatch.logging_config import setup_logging


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent
    load_dotenv(project_root / ".env")
    setup_logging()

    # Get configuration from environment
    api_host = os.getenv("API_HOST", "0.0.0.0")
    api_port = int(os.getenv("API_PORT", os.getenv("PORT", "3000")))

    app = create_fastapi_app()

    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
