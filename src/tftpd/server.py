from __future__ import annotations

import logging
import threading
from typing import Callable

from .constants import ERR_NOT_DEFINED
from .net import Address, Endpoint, UdpEndpoint
from .packet import DecodeError, Error, Packet, ReadRequest, WriteRequest, decode
from .storage import Storage
from .transfer import RetryPolicy, handle_read, handle_write, send

logger = logging.getLogger(__name__)


class Server:
    """Accepts requests on one endpoint and runs each transfer on its own thread.

    Every transfer gets a fresh endpoint from ``endpoint_factory`` so its
    datagrams never mix with the listening socket or with other transfers.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        storage: Storage,
        policy: RetryPolicy = RetryPolicy(),
        endpoint_factory: Callable[[], Endpoint] = UdpEndpoint.ephemeral,
        poll_interval_s: float = 0.5,
    ):
        self.endpoint = endpoint
        self.storage = storage
        self.policy = policy
        self.endpoint_factory = endpoint_factory
        self.poll_interval_s = poll_interval_s
        self._stopped = threading.Event()

    def serve_forever(self) -> None:
        self.endpoint.settimeout(self.poll_interval_s)
        while not self._stopped.is_set():
            try:
                raw, remote = self.endpoint.recvfrom()
            except TimeoutError:
                continue
            except OSError:
                if self._stopped.is_set():
                    break
                raise

            try:
                request = decode(raw)
            except DecodeError as exc:
                logger.warning("bad request from %s: %s", remote, exc)
                self._reject(self.endpoint, remote)
                continue

            threading.Thread(
                target=self.dispatch,
                args=(request, remote),
                name=f"tftpd-{remote[0]}:{remote[1]}",
                daemon=True,
            ).start()

    def dispatch(self, request: Packet, remote: Address) -> None:
        try:
            endpoint = self.endpoint_factory()
        except OSError as exc:
            logger.error("cannot open transfer endpoint for %s: %s", remote, exc)
            return

        try:
            if isinstance(request, ReadRequest):
                logger.info("read for file %s from %s (mode %s)", request.filename, remote, request.mode)
                handle_read(endpoint, remote, request, self.storage, self.policy)
            elif isinstance(request, WriteRequest):
                logger.info("write for file %s from %s (mode %s)", request.filename, remote, request.mode)
                handle_write(endpoint, remote, request, self.storage, self.policy)
            else:
                logger.warning("bad request packet type %s from %s", type(request).__name__, remote)
                self._reject(endpoint, remote)
        finally:
            endpoint.close()

    def shutdown(self) -> None:
        self._stopped.set()

    def _reject(self, endpoint: Endpoint, remote: Address) -> None:
        try:
            send(endpoint, remote, Error(ERR_NOT_DEFINED, "malformed packet"))
        except OSError as exc:
            logger.error("failed to reject request from %s: %s", remote, exc)

    def __enter__(self) -> "Server":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
        self.endpoint.close()
