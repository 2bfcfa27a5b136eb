#!/usr/bin/env python3
"""
Script to run the Snowflake key generator API server.
"""

import argparse

import uvicorn
from keygen.core.config import config


def main():
    """Run the API server."""
    app_config = config.get("app", {})

    parser = argparse.ArgumentParser(description="Run the Snowflake key generator API")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=app_config.get("port") or 8000, help="Listen port")
    parser.add_argument("--reload", action="store_true", default=app_config.get("env") == "development",
                        help="Reload on code changes")
    args = parser.parse_args()

    # A single worker process: every process needs its own node id
    uvicorn.run(
        "keygen.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
