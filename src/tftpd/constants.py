from __future__ import annotations

OPCODE_FORMAT = "!H"
BLOCK_HEADER_FORMAT = "!HH"  # opcode, block number or error code

RRQ = 1
WRQ = 2
DATA = 3
ACK = 4
ERROR = 5

ERR_NOT_DEFINED = 0
ERR_FILE_NOT_FOUND = 1
ERR_UNKNOWN_TID = 5

BLOCK_SIZE = 512
MAX_DATAGRAM = 1024
BLOCK_MODULO = 0x10000

DEFAULT_TIMEOUT_S = 5.0
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_PORT = 6969
