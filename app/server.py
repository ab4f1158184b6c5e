"""
Application runner.

Usage:
    image-intake
    image-intake --port 8080
    image-intake --host 127.0.0.1 --reload
"""

import argparse

import uvicorn

from app.core.config import settings


def main():
    """Run the FastAPI application with uvicorn."""
    parser = argparse.ArgumentParser(description="Image Intake Service")
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: HOST setting)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: PORT setting, 4000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )

    args = parser.parse_args()

    uvicorn.run(
        "app.main:app",
        host=args.host or settings.HOST,
        port=args.port or settings.PORT,
        reload=args.reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
