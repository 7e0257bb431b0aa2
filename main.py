"""Kitchen Quest launcher. Starts the API server."""

import argparse
import logging

import uvicorn

from kitchen_quest.app import create_app
from kitchen_quest.config import load_settings


def main():
    parser = argparse.ArgumentParser(description="Kitchen Quest server")
    parser.add_argument("--demo", action="store_true",
                        help="Demo mode: canned data, narration logged but never spoken")
    parser.add_argument("--host", default=None, help="Bind address (default: $HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: $PORT or 13013)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: $KQ_LOG_LEVEL or INFO)")
    args = parser.parse_args()

    settings = load_settings(
        demo_mode=True if args.demo else None,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"Starting Kitchen Quest on http://localhost:{settings.port} ...")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
