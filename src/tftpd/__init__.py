"""tftpd: a TFTP server over UDP

The package keeps the layers apart the way reliability-first systems are built:
- ``packet`` frames and parses the five packet types
- ``transfer`` holds the per-transfer state machines and the retry primitive
- ``server`` dispatches requests, one thread and one socket per transfer
- ``storage`` is the file-content backend
"""

__all__ = []
