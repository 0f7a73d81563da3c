#!/usr/bin/env python3
"""Run the mock memory ingestion endpoint locally.

Usage examples:
    # One app, one user, default port
    uv run python scripts/mock_server.py --app-id demo --api-key sk_test --user alice

    # Throttle to 1 request/second with a burst of 3
    uv run python scripts/mock_server.py --app-id demo --api-key sk_test --user alice \
        --rate 1 --burst 3

Then point the client at it:
    OmiClient(app_id="demo", api_key="sk_test", base_url="http://127.0.0.1:8765")
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from omi_memory.config import settings
from omi_memory.mock import CREATE_MEMORY, MockApp, MockRegistry, MockServer

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def serve(registry: MockRegistry, host: str, port: int) -> None:
    server = MockServer(registry, host=host, port=port)
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the mock memory ingestion endpoint")
    parser.add_argument("--app-id", required=True, help="App identifier accepted in the path")
    parser.add_argument("--api-key", required=True, help="Bearer key accepted for the app")
    parser.add_argument(
        "--user",
        action="append",
        default=[],
        help="User id that has enabled the app (repeatable)",
    )
    parser.add_argument("--host", default=settings.mock_server_host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.mock_server_port, help="Bind port")
    parser.add_argument("--rate", type=float, help="Requests per second before answering 429")
    parser.add_argument("--burst", type=int, default=1, help="Burst capacity (default: 1)")
    parser.add_argument(
        "--no-capability",
        action="store_true",
        help=f"Register the app without the {CREATE_MEMORY} capability (every call gets 403)",
    )
    args = parser.parse_args()

    if not args.user:
        logger.warning("No --user given; every request will be rejected with 403")

    registry = MockRegistry()
    registry.register(
        MockApp(
            app_id=args.app_id,
            api_keys={args.api_key},
            capabilities=set() if args.no_capability else {CREATE_MEMORY},
            enabled_users=set(args.user),
            rate=args.rate,
            burst=args.burst,
        )
    )

    try:
        asyncio.run(serve(registry, args.host, args.port))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
