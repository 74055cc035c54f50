"""API server entry point."""

import argparse
import logging

import uvicorn

from condo.services.config import load_config
from condo.services.logging import setup_logging

logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Condo Ledger API server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    args = parser.parse_args()

    settings = load_config()
    setup_logging(settings.log_file, settings.log_level)
    logger.info(f"Starting API server on {args.host}:{args.port}")

    from condo.api.app import app

    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
