"""
main.py: server launcher and entry point.

Run this file to start the booking API:

    python main.py

The API is served at http://127.0.0.1:8000/api and the interactive docs at
http://127.0.0.1:8000/docs. The admin console is a separate Streamlit app:

    streamlit run dashboard/app.py

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import argparse

import uvicorn


HOST = "127.0.0.1"
PORT = 8000


def main(argv: list[str] | None = None) -> None:
    """Start the booking API server."""
    parser = argparse.ArgumentParser(description="Run the office booking API")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--no-reload", action="store_true", help="disable hot reload")
    args = parser.parse_args(argv)

    print("=" * 60)
    print("  Office Booking Service")
    print("=" * 60)
    print(f"  API      : http://{args.host}:{args.port}/api")
    print(f"  API docs : http://{args.host}:{args.port}/docs")
    print("  Console  : streamlit run dashboard/app.py")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    uvicorn.run(
        "app:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
