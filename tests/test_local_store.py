from __future__ import annotations

from jobwatch.storage.local_store import LocalStorage


def test_ensure_dir_is_idempotent(tmp_path):
    store = LocalStorage(base_dir=str(tmp_path / "out"))

    p1 = store.ensure_dir("scan-7/trivy-vex")
    p2 = store.ensure_dir("scan-7/trivy-vex")

    assert p1 == p2
    assert store.exists("scan-7/trivy-vex")


def test_put_text_and_bytes_create_parents(tmp_path):
    store = LocalStorage(base_dir=str(tmp_path))

    store.put_text("/scan-7/logs.log", "line\n")
    store.put_bytes("scan-7/trivy-1/raw_init", b"\x00\x01")

    assert (tmp_path / "scan-7" / "logs.log").read_text(encoding="utf-8") == "line\n"
    assert (tmp_path / "scan-7" / "trivy-1" / "raw_init").read_bytes() == b"\x00\x01"
    assert store.path("scan-7/logs.log") == str(tmp_path / "scan-7" / "logs.log")
