from __future__ import annotations

from tftpd.cli import build_parser, main, make_storage
from tftpd.constants import DEFAULT_MAX_ATTEMPTS, DEFAULT_PORT, DEFAULT_TIMEOUT_S
from tftpd.storage import DirStore, MemStore


def test_defaults():
    args = build_parser().parse_args([])
    assert args.port == DEFAULT_PORT
    assert args.timeout == DEFAULT_TIMEOUT_S
    assert args.max_attempts == DEFAULT_MAX_ATTEMPTS
    assert isinstance(make_storage(args), MemStore)


def test_root_dir_selects_dirstore(tmp_path):
    args = build_parser().parse_args(["--root-dir", str(tmp_path / "srv")])
    store = make_storage(args)
    assert isinstance(store, DirStore)
    assert (tmp_path / "srv").is_dir()


def test_rejects_zero_attempts():
    assert main(["--max-attempts", "0", "--port", "0"]) == 2
