from __future__ import annotations

import argparse
import functools
import logging

from .constants import DEFAULT_MAX_ATTEMPTS, DEFAULT_PORT, DEFAULT_TIMEOUT_S
from .net import Impairment, UdpEndpoint
from .server import Server
from .storage import DirStore, MemStore, Storage
from .transfer import RetryPolicy

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tftpd", description="TFTP server over UDP (one block in flight).")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=DEFAULT_PORT)
    p.add_argument("--root-dir", default=None, help="serve files from this directory (default: in memory)")
    p.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_S, help="seconds to wait per attempt")
    p.add_argument("--max-attempts", type=int, default=DEFAULT_MAX_ATTEMPTS)
    p.add_argument("--loss-rate", type=float, default=0.0, help="simulate packet loss on transfers")
    p.add_argument("--delay-ms", type=int, default=0, help="simulate delay on transfers")
    return p


def make_storage(args: argparse.Namespace) -> Storage:
    if args.root_dir:
        return DirStore(args.root_dir)
    return MemStore()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")

    if args.max_attempts < 1:
        logger.error("--max-attempts must be at least 1")
        return 2

    impair = Impairment(args.loss_rate, args.delay_ms)
    storage = make_storage(args)
    policy = RetryPolicy(timeout_s=args.timeout, max_attempts=args.max_attempts)

    listener = UdpEndpoint.listening(args.host, args.port)
    host, port = listener.address
    logger.info("listening on %s:%d (%s)", host, port, args.root_dir or "in-memory storage")

    with Server(
        listener,
        storage,
        policy=policy,
        endpoint_factory=functools.partial(UdpEndpoint.ephemeral, impairment=impair),
    ) as server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("shutting down")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
