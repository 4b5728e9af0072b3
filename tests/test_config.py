from __future__ import annotations

import pytest

from jobwatch.config import DEFAULT_TARGET_DIRS, WatchConfig, load_watch_config

_ENV_VARS = [
    "WATCH_NAMESPACE",
    "OUTPUT_DIR",
    "POLL_INTERVAL_SECONDS",
    "IDLE_TIMEOUT_SECONDS",
    "POD_WAIT_TIMEOUT_SECONDS",
    "POD_WAIT_INTERVAL_SECONDS",
    "TARGET_DIRS",
    "HARVEST_SUFFIX",
    "JOB_LABEL_KEY",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    cfg = load_watch_config()

    assert cfg.namespace == "trivy-system"
    assert cfg.poll_interval_seconds == 5.0
    assert cfg.idle_timeout_seconds == 600.0
    assert cfg.pod_wait_timeout_seconds == 60.0
    assert cfg.target_dirs == DEFAULT_TARGET_DIRS
    assert cfg.harvest_suffix == "_init"
    assert cfg.job_selector("scan-7") == "job-name=scan-7"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("WATCH_NAMESPACE", "scans")
    monkeypatch.setenv("OUTPUT_DIR", "/var/out")
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("IDLE_TIMEOUT_SECONDS", "120")
    monkeypatch.setenv("TARGET_DIRS", "/a, /b ,,")
    monkeypatch.setenv("HARVEST_SUFFIX", "-prep")
    monkeypatch.setenv("JOB_LABEL_KEY", "batch.kubernetes.io/job-name")

    cfg = load_watch_config()

    assert cfg.namespace == "scans"
    assert cfg.output_root == "/var/out"
    assert cfg.poll_interval_seconds == 2.5
    assert cfg.idle_timeout_seconds == 120.0
    assert cfg.target_dirs == ("/a", "/b")
    assert cfg.harvest_suffix == "-prep"
    assert cfg.job_selector("x") == "batch.kubernetes.io/job-name=x"


def test_invalid_and_negative_numbers(monkeypatch):
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "soon")
    monkeypatch.setenv("IDLE_TIMEOUT_SECONDS", "-5")
    monkeypatch.setenv("POD_WAIT_INTERVAL_SECONDS", "0")

    cfg = load_watch_config()

    assert cfg.poll_interval_seconds == 5.0
    assert cfg.idle_timeout_seconds == 0.0
    assert cfg.pod_wait_interval_seconds == pytest.approx(0.1)


def test_with_overrides_keeps_unset_values():
    base = WatchConfig(namespace="a", idle_timeout_seconds=30.0)

    cfg = base.with_overrides(namespace="b", target_dirs=("/x",), pod_wait_timeout_seconds=5)

    assert cfg.namespace == "b"
    assert cfg.idle_timeout_seconds == 30.0
    assert cfg.pod_wait_timeout_seconds == 5.0
    assert cfg.target_dirs == ("/x",)
    assert base.namespace == "a"
