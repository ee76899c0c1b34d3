from __future__ import annotations

from collections import deque
from typing import Deque, List, Tuple, Union

import pytest

from tftpd.packet import Packet, decode, encode

CLIENT = ("127.0.0.1", 7000)
STRANGER = ("127.0.0.1", 7001)

Inbound = Union[Tuple[bytes, Tuple[str, int]], BaseException]


class FakeEndpoint:
    """Replays scripted datagrams and exceptions; records what gets sent.

    When the script runs dry every further receive times out.
    """

    def __init__(self, *inbound: Inbound, send_error: OSError | None = None):
        self.inbound: Deque[Inbound] = deque(inbound)
        self.sent: List[Tuple[bytes, Tuple[str, int]]] = []
        self.send_error = send_error
        self.timeout: float | None = None
        self.closed = False

    def push(self, packet: Packet, addr: Tuple[str, int] = CLIENT) -> "FakeEndpoint":
        self.inbound.append((encode(packet), addr))
        return self

    def push_raw(self, raw: bytes, addr: Tuple[str, int] = CLIENT) -> "FakeEndpoint":
        self.inbound.append((raw, addr))
        return self

    def push_exc(self, exc: BaseException) -> "FakeEndpoint":
        self.inbound.append(exc)
        return self

    def sendto(self, data: bytes, addr: Tuple[str, int]) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((bytes(data), addr))

    def recvfrom(self, bufsize: int = 1024):
        if not self.inbound:
            raise TimeoutError("timed out")
        item = self.inbound.popleft()
        if isinstance(item, BaseException):
            raise item
        return item

    def settimeout(self, seconds: float | None) -> None:
        self.timeout = seconds

    def close(self) -> None:
        self.closed = True

    def sent_packets(self, addr: Tuple[str, int] | None = None) -> List[Packet]:
        return [decode(raw) for raw, to in self.sent if addr is None or to == addr]


@pytest.fixture
def endpoint() -> FakeEndpoint:
    return FakeEndpoint()
