#!/usr/bin/env python3
"""Main entry point for the Clone party game server."""

import logging
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from config.settings import get_default_config


def setup_logging(level: str = "INFO"):
    """Configure logging for the web server."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Suppress noisy third-party loggers
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def print_usage():
    """Print usage information for local development."""

    print("Clone Party Game")
    print("=" * 40)
    print("Available entry points:")
    print()
    print("🌐 Web Server (API + WebSocket):")
    print("   python main.py --web")
    print()
    print("⚙️  Configuration:")
    print("   clone_config.json is created from the template on first run")
    print("   OPENAI_API_KEY / OPENROUTER_API_KEY enable generated answers")
    print()


def start_web_server():
    """Start the FastAPI web server."""
    config = get_default_config()
    setup_logging(config.system.log_level)

    import uvicorn

    from web.api import app

    port = int(os.environ.get("PORT", 8000))

    print("🎭 Starting Clone Party Game Server...")
    print(f"📡 API Documentation: http://localhost:{port}/docs")
    print(f"🔌 WebSocket: ws://localhost:{port}/v1/ws/room/{{room_id}}")

    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info", access_log=True)


def main():
    """Main entry point."""
    # Check for production environment (Railway, Docker, Heroku, etc.)
    is_production = any([
        "RAILWAY_ENVIRONMENT" in os.environ,
        "PORT" in os.environ,
        "DYNO" in os.environ,  # Heroku
        os.environ.get("ENVIRONMENT") == "production"
    ])

    if is_production or "--web" in sys.argv:
        start_web_server()
    elif "--help" in sys.argv or "-h" in sys.argv:
        print_usage()
    else:
        print_usage()
        print("💡 Tip: Use 'python main.py --web' to start the server")


if __name__ == "__main__":
    main()
