from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import ClassVar, Union

from .constants import (
    ACK,
    BLOCK_HEADER_FORMAT,
    BLOCK_MODULO,
    DATA,
    ERROR,
    OPCODE_FORMAT,
    RRQ,
    WRQ,
)

_OPCODE = struct.Struct(OPCODE_FORMAT)
_HEADER = struct.Struct(BLOCK_HEADER_FORMAT)


class DecodeError(ValueError):
    """Raised when a datagram is not a well-formed packet."""


class Opcode(enum.IntEnum):
    RRQ = RRQ
    WRQ = WRQ
    DATA = DATA
    ACK = ACK
    ERROR = ERROR


@dataclass(frozen=True, slots=True)
class ReadRequest:
    opcode: ClassVar[Opcode] = Opcode.RRQ
    filename: str
    mode: str


@dataclass(frozen=True, slots=True)
class WriteRequest:
    opcode: ClassVar[Opcode] = Opcode.WRQ
    filename: str
    mode: str


@dataclass(frozen=True, slots=True)
class Data:
    opcode: ClassVar[Opcode] = Opcode.DATA
    block: int
    payload: bytes = b""


@dataclass(frozen=True, slots=True)
class Ack:
    opcode: ClassVar[Opcode] = Opcode.ACK
    block: int


@dataclass(frozen=True, slots=True)
class Error:
    opcode: ClassVar[Opcode] = Opcode.ERROR
    code: int
    message: str


Request = Union[ReadRequest, WriteRequest]
Packet = Union[ReadRequest, WriteRequest, Data, Ack, Error]


def encode(packet: Packet) -> bytes:
    if isinstance(packet, (ReadRequest, WriteRequest)):
        return b"".join(
            (
                _OPCODE.pack(packet.opcode),
                packet.filename.encode("utf-8"),
                b"\x00",
                packet.mode.encode("utf-8"),
                b"\x00",
            )
        )
    if isinstance(packet, Data):
        return _HEADER.pack(packet.opcode, packet.block % BLOCK_MODULO) + packet.payload
    if isinstance(packet, Ack):
        return _HEADER.pack(packet.opcode, packet.block % BLOCK_MODULO)
    if isinstance(packet, Error):
        return _HEADER.pack(packet.opcode, packet.code) + packet.message.encode("utf-8") + b"\x00"
    raise TypeError(f"not a packet: {packet!r}")


def decode(raw: bytes) -> Packet:
    if len(raw) < _OPCODE.size:
        raise DecodeError("no packet op code")

    (op,) = _OPCODE.unpack_from(raw)
    try:
        opcode = Opcode(op)
    except ValueError:
        raise DecodeError(f"invalid op code {op}") from None

    if opcode in (Opcode.RRQ, Opcode.WRQ):
        filename, mode = _split_request(raw[_OPCODE.size :])
        if opcode is Opcode.RRQ:
            return ReadRequest(filename, mode)
        return WriteRequest(filename, mode)

    if len(raw) < _HEADER.size:
        raise DecodeError(f"{opcode.name} packet too short: {len(raw)} bytes")

    _, value = _HEADER.unpack_from(raw)
    body = raw[_HEADER.size :]
    if opcode is Opcode.DATA:
        return Data(value, bytes(body))
    if opcode is Opcode.ACK:
        return Ack(value)

    if body.endswith(b"\x00"):
        body = body[:-1]
    return Error(value, _text(body))


def _split_request(body: bytes) -> tuple[str, str]:
    # filename, mode and the empty remainder after the final null
    parts = body.split(b"\x00")
    if len(parts) != 3 or parts[2]:
        raise DecodeError("malformed request packet")
    return _text(parts[0]), _text(parts[1])


def _text(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"invalid text field: {exc}") from None
