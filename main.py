"""
main.py: server launcher and entry point.

Run this file to start the cellar planning API:

    python main.py

Interactive API docs are served at http://127.0.0.1:8000/docs

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("CELLAR_HOST", "127.0.0.1")
PORT = int(os.getenv("CELLAR_PORT", "8000"))


def main() -> None:
    """Start the cellar planning server."""
    print("=" * 60)
    print("  Cellar Production Planner")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Blocks until CTRL+C
    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=os.getenv("CELLAR_RELOAD", "0") == "1",
        log_level="info",
    )


if __name__ == "__main__":
    main()
