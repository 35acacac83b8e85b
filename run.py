#!/usr/bin/env python3
"""
Factoring Desk Entry Point

Starts the FastAPI server for the collections back office.
"""

import sys

from factoring_desk.api import run_server
from factoring_desk.config import get_config


if __name__ == "__main__":
    settings = get_config()
    print("Starting Factoring Desk...")
    print(f"API available at: http://localhost:{settings.api_port}")
    print(f"Documentation at: http://localhost:{settings.api_port}/docs")
    print()

    try:
        run_server(debug="--reload" in sys.argv)
    except KeyboardInterrupt:
        print("\nShutting down Factoring Desk...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
