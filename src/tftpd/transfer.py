"""Per-transfer protocol engine.

``transmit`` is the single send/await/retry primitive; ``handle_read`` and
``handle_write`` drive it one block at a time. Neither keeps state outside the
call, so a transfer can be run against any ``Endpoint``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from .constants import (
    BLOCK_MODULO,
    BLOCK_SIZE,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT_S,
    ERR_FILE_NOT_FOUND,
    ERR_NOT_DEFINED,
    ERR_UNKNOWN_TID,
    MAX_DATAGRAM,
)
from .net import Address, Endpoint
from .packet import Ack, Data, DecodeError, Error, Packet, ReadRequest, WriteRequest, decode, encode
from .storage import NotFoundError, Storage, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    timeout_s: float = DEFAULT_TIMEOUT_S
    max_attempts: int = DEFAULT_MAX_ATTEMPTS


@dataclass(frozen=True, slots=True)
class TransmitFailure:
    """An exchange that could not complete; ``error`` is what to tell the client."""

    error: Error
    reason: str


TransmitResult = Union[Packet, TransmitFailure]


def send(endpoint: Endpoint, remote: Address, packet: Packet) -> None:
    endpoint.sendto(encode(packet), remote)


def _notify(endpoint: Endpoint, remote: Address, packet: Packet) -> None:
    try:
        send(endpoint, remote, packet)
    except OSError as exc:
        logger.error("failed to send %s to %s: %s", type(packet).__name__, remote, exc)


def transmit(
    endpoint: Endpoint,
    remote: Address,
    packet: Packet,
    policy: RetryPolicy = RetryPolicy(),
) -> TransmitResult:
    endpoint.settimeout(policy.timeout_s)
    attempts = 0
    while True:
        try:
            send(endpoint, remote, packet)
        except OSError as exc:
            return TransmitFailure(Error(ERR_NOT_DEFINED, "failed to send packet"), str(exc))

        try:
            raw, addr = endpoint.recvfrom(MAX_DATAGRAM)
        except TimeoutError:
            attempts += 1
            logger.debug("recv from %s timed out (attempt %d/%d)", remote, attempts, policy.max_attempts)
            if attempts >= policy.max_attempts:
                logger.warning("no response from %s after %d attempts", remote, attempts)
                return TransmitFailure(Error(ERR_NOT_DEFINED, "connection timed out"), "timed out")
            continue
        except OSError as exc:
            logger.error("recv from %s failed: %s", remote, exc)
            return TransmitFailure(Error(ERR_NOT_DEFINED, str(exc) or "receive failed"), str(exc))

        if addr != remote:
            logger.warning("unknown transfer ID %s (expected %s)", addr, remote)
            _notify(endpoint, addr, Error(ERR_UNKNOWN_TID, "unknown transfer ID"))
            continue

        try:
            return decode(raw)
        except DecodeError as exc:
            logger.warning("malformed packet from %s: %s", remote, exc)
            return TransmitFailure(Error(ERR_NOT_DEFINED, str(exc)), "malformed packet")


def handle_write(
    endpoint: Endpoint,
    remote: Address,
    request: WriteRequest,
    storage: Storage,
    policy: RetryPolicy = RetryPolicy(),
) -> None:
    block = 0
    buffer = bytearray()

    while True:
        result = transmit(endpoint, remote, Ack(block), policy)

        if isinstance(result, TransmitFailure):
            logger.warning("write %s from %s aborted: %s", request.filename, remote, result.reason)
            _notify(endpoint, remote, result.error)
            return
        if isinstance(result, Error):
            logger.warning("client %s sent error %d: %s", remote, result.code, result.message)
            return
        if not isinstance(result, Data):
            logger.warning("unexpected %s from %s during write", type(result).__name__, remote)
            _notify(endpoint, remote, Error(ERR_NOT_DEFINED, "invalid packet op"))
            return

        if result.block == (block + 1) % BLOCK_MODULO:
            block = result.block
            buffer += result.payload
        else:
            logger.debug("ignoring data block %d, expected %d", result.block, block + 1)

        if len(result.payload) < BLOCK_SIZE:
            break

    try:
        storage.put(request.filename, bytes(buffer))
    except StorageError as exc:
        logger.error("storing %s failed: %s", request.filename, exc)
        _notify(endpoint, remote, Error(ERR_NOT_DEFINED, "unable to put file"))
        return
    logger.info("put file %s with %d bytes", request.filename, len(buffer))

    try:
        send(endpoint, remote, Ack(block))
    except OSError as exc:
        logger.error("sending final ack to %s failed: %s", remote, exc)
        _notify(endpoint, remote, Error(ERR_NOT_DEFINED, "failed to write final ack"))


def handle_read(
    endpoint: Endpoint,
    remote: Address,
    request: ReadRequest,
    storage: Storage,
    policy: RetryPolicy = RetryPolicy(),
) -> None:
    try:
        content = storage.get(request.filename)
    except NotFoundError as exc:
        logger.warning("read %s: %s", request.filename, exc)
        _notify(endpoint, remote, Error(ERR_FILE_NOT_FOUND, "file does not exist"))
        return
    except StorageError as exc:
        logger.error("reading %s failed: %s", request.filename, exc)
        _notify(endpoint, remote, Error(ERR_NOT_DEFINED, "unable to get file"))
        return

    position = 0
    block = 1
    while position < len(content):
        chunk_end = min(position + BLOCK_SIZE, len(content))
        result = transmit(endpoint, remote, Data(block, content[position:chunk_end]), policy)

        if isinstance(result, TransmitFailure):
            logger.warning("read %s by %s aborted: %s", request.filename, remote, result.reason)
            _notify(endpoint, remote, result.error)
            return
        if isinstance(result, Error):
            logger.warning("client %s sent error %d: %s", remote, result.code, result.message)
            return
        if not isinstance(result, Ack):
            logger.warning("unexpected %s from %s during read", type(result).__name__, remote)
            _notify(endpoint, remote, Error(ERR_NOT_DEFINED, "incorrect packet op"))
            return

        if result.block == block % BLOCK_MODULO:
            block += 1
            position = chunk_end
        else:
            logger.debug("ignoring ack %d, waiting for %d", result.block, block)

    logger.info("got file %s with %d bytes", request.filename, len(content))
