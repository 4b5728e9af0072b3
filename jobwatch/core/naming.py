"""Local naming helpers for captured artifacts."""

from __future__ import annotations

import posixpath

DEFAULT_HARVEST_SUFFIX = "_init"


def harvest_local_name(remote_name: str, suffix: str = DEFAULT_HARVEST_SUFFIX) -> str:
    """
    Insert `suffix` before the file extension.

    `report.json` -> `report_init.json`, `data` -> `data_init`. Only the last extension
    is split off (`bom.cdx.json` -> `bom.cdx_init.json`). Listing entries that carry a
    path are reduced to their basename first.
    """
    name = posixpath.basename((remote_name or "").strip().rstrip("/"))
    base, ext = posixpath.splitext(name)
    return f"{base}{suffix}{ext}"


def target_subdir_name(target_dir: str) -> str:
    """Local mirror directory for an in-container target: its last path segment."""
    seg = posixpath.basename(str(target_dir or "").rstrip("/"))
    return seg or "root"


def remote_file_path(target_dir: str, remote_name: str) -> str:
    return posixpath.join(str(target_dir).rstrip("/") or "/", remote_name.strip())
