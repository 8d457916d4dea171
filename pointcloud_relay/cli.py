from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import Optional, Sequence

from .client import RelayClient, synthetic_scan
from .exceptions import IngestRejectedError, RelayTransportError
from .logging_setup import configure_logging

_logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pointcloud-relay-producer",
        description="Post synthetic lidar sweeps to a relay server.",
    )
    parser.add_argument("--url", default="http://127.0.0.1:8000", help="Relay base URL")
    parser.add_argument("--drone-id", required=True)
    parser.add_argument("--api-key", required=True)
    parser.add_argument("--interval", type=float, default=0.5, help="Seconds between batches")
    parser.add_argument("--count", type=int, default=0, help="Batches to send (0 = until interrupted)")
    parser.add_argument("--points", type=int, default=360, help="Points per sweep")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--log-level", default=None)
    return parser


async def run_producer(
    url: str,
    drone_id: str,
    api_key: str,
    *,
    interval: float,
    count: int = 0,
    points: int = 360,
    seed: Optional[int] = None,
) -> int:
    """Send sweeps until ``count`` is reached; returns how many were accepted."""
    accepted = 0
    sent = 0
    async with RelayClient(url) as client:
        while count <= 0 or sent < count:
            batch = synthetic_scan(drone_id, points, seed=None if seed is None else seed + sent)
            sent += 1
            try:
                ack = await client.ingest(batch, api_key)
            except IngestRejectedError as exc:
                # rejections are terminal for that batch; the next sweep supersedes it
                _logger.warning("Batch rejected (%s): %s", exc.reason.value, exc)
            except RelayTransportError as exc:
                _logger.warning("Relay unreachable: %s", exc)
            else:
                accepted += 1
                _logger.info("Sent %s points=%s at %s", ack.drone_id, ack.point_count, ack.timestamp)
            await asyncio.sleep(interval)
    return accepted


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    async def _main() -> None:
        stop = asyncio.Event()

        def _handle_stop(*_args) -> None:
            stop.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _handle_stop)
            except NotImplementedError:
                pass

        task = asyncio.create_task(
            run_producer(
                args.url,
                args.drone_id,
                args.api_key,
                interval=args.interval,
                count=args.count,
                points=args.points,
                seed=args.seed,
            )
        )
        stopper = asyncio.create_task(stop.wait())
        await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        stopper.cancel()
        if not task.done():
            task.cancel()
        try:
            accepted = await task
        except asyncio.CancelledError:
            return
        _logger.info("Done: %d batches accepted", accepted)

    asyncio.run(_main())


if __name__ == "__main__":
    main()
