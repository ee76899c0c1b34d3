from __future__ import annotations

import logging
import random
import socket
import time
from dataclasses import dataclass
from typing import Protocol, Tuple

from .constants import MAX_DATAGRAM

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


class Endpoint(Protocol):
    """The datagram operations a transfer needs from its socket."""

    def sendto(self, data: bytes, addr: Address) -> None: ...

    def recvfrom(self, bufsize: int = MAX_DATAGRAM) -> Tuple[bytes, Address]: ...

    def settimeout(self, seconds: float | None) -> None: ...

    def close(self) -> None: ...


@dataclass(frozen=True, slots=True)
class Impairment:
    loss_rate: float = 0.0
    delay_ms: int = 0

    def should_drop(self) -> bool:
        return self.loss_rate > 0 and random.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None):
        self.sock = sock
        self.impairment = impairment or Impairment()

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        timeout_s: float | None = None,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        sock.settimeout(timeout_s)
        return cls(sock, impairment)

    @classmethod
    def ephemeral(
        cls,
        host: str = "",
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        """Bind a fresh socket on an OS-assigned port, one per transfer."""
        return cls.listening(host, 0, impairment=impairment)

    @property
    def address(self) -> Address:
        return self.sock.getsockname()

    def sendto(self, data: bytes, addr: Address) -> None:
        if self.impairment.should_drop():
            logger.debug("dropped outbound %d bytes to %s", len(data), addr)
            return
        self.impairment.sleep_if_needed()
        self.sock.sendto(data, addr)

    def recvfrom(self, bufsize: int = MAX_DATAGRAM) -> Tuple[bytes, Address]:
        while True:
            data, addr = self.sock.recvfrom(bufsize)
            if self.impairment.should_drop():
                logger.debug("dropped inbound %d bytes from %s", len(data), addr)
                continue
            self.impairment.sleep_if_needed()
            return data, addr

    def settimeout(self, seconds: float | None) -> None:
        self.sock.settimeout(seconds)

    def close(self) -> None:
        self.sock.close()
