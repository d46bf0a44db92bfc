#!/usr/bin/env python3
"""
TrialByte - Backend Launcher
============================
Starts the API server, optionally initializing the database first.

Usage:
    python run.py                    # Serve on 127.0.0.1:8000
    python run.py --init-db          # Create tables and the admin user first
    python run.py --host 0.0.0.0 --port 5002 --reload
"""

import argparse
import os
import sys
from pathlib import Path

import uvicorn

# =============================================================================
# CONFIGURATION
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.resolve()
BACKEND_DIR = PROJECT_ROOT / "backend"

DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))


def print_header(text):
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print('=' * 60)


def print_step(text):
    print(f"  -> {text}")


def init_database() -> bool:
    """Run the table/admin bootstrap before serving."""
    from scripts.init_database import main as init_main

    print_step("Initializing database...")
    return init_main(["--yes"]) == 0


def main():
    parser = argparse.ArgumentParser(description="TrialByte - Backend Launcher")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Bind address")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Bind port")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser.add_argument("--init-db", action="store_true", help="Create tables before starting")
    args = parser.parse_args()

    print_header("TrialByte API")

    if args.init_db and not init_database():
        print("\nDatabase initialization failed, not starting the server.")
        sys.exit(1)

    print_step(f"Starting backend on http://{args.host}:{args.port}")
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        app_dir=str(BACKEND_DIR),
    )


if __name__ == "__main__":
    main()
