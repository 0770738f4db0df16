#!/usr/bin/env python3
"""Run PolyPact API server.

Usage:
    python run_server.py                    # Run with defaults
    python run_server.py --port 8080        # Custom port
    python run_server.py --reload           # Dev mode with auto-reload
    python run_server.py --log-format json  # Structured logs
"""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent / "src"))

from polypact.core.utils import setup_logging

# Load environment variables from .env file
env_path = Path(__file__).parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
    print(f"Loaded environment from {env_path}")


def main():
    parser = argparse.ArgumentParser(description="Run PolyPact API Server")
    parser.add_argument("--host", default=os.environ.get("POLYPACT_HOST", "0.0.0.0"), help="Host to bind to")
    parser.add_argument("--port", type=int, default=int(os.environ.get("POLYPACT_PORT", "8000")), help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--log-level", default=os.environ.get("POLYPACT_LOG_LEVEL", "INFO"), help="Log level")
    parser.add_argument("--log-format", default=os.environ.get("POLYPACT_LOG_FORMAT", "text"), choices=["text", "json"])
    args = parser.parse_args()

    setup_logging(args.log_level, args.log_format)

    # Validate environment
    openrouter_key = os.environ.get("OPENROUTER_API_KEY")
    kanoon_key = os.environ.get("INDIAN_KANOON_API_KEY")
    jwt_secret = os.environ.get("POLYPACT_JWT_SECRET")

    print("\n" + "=" * 60)
    print("POLYPACT API SERVER")
    print("=" * 60)
    print(f"  Host:          {args.host}")
    print(f"  Port:          {args.port}")
    print(f"  Reload:        {args.reload}")
    print(f"  Log Level:     {args.log_level}")
    print()
    print(f"  OpenRouter:    {'configured' if openrouter_key else 'NOT SET'}")
    print(f"  Indian Kanoon: {'configured' if kanoon_key else 'NOT SET (grounding uses model only)'}")
    print(f"  JWT secret:    {'configured' if jwt_secret else 'NOT SET'}")
    print("=" * 60)
    print()

    if not openrouter_key:
        print("Warning: OPENROUTER_API_KEY not set")
        print("   Set it in .env file or environment")

    # Run with uvicorn; the scheduler keeps per-process state, so one worker
    import uvicorn

    uvicorn.run(
        "polypact.service.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
