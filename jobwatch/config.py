from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from jobwatch.core.naming import DEFAULT_HARVEST_SUFFIX

DEFAULT_NAMESPACE = "trivy-system"
DEFAULT_OUTPUT_DIR = "./job-diagnostics"
DEFAULT_TARGET_DIRS: Tuple[str, ...] = ("/tmp/trivy-vex", "/tmp/trivy-1")
DEFAULT_JOB_LABEL_KEY = "job-name"

# Never let the pod-wait loop spin without sleeping.
MIN_POD_WAIT_INTERVAL_SECONDS = 0.1


def _env_str(name: str, default: str) -> str:
    raw = (os.getenv(name) or "").strip()
    return raw or default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return max(0.0, float(raw))
    except Exception:
        return default


def _env_csv(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    out = tuple(p.strip() for p in raw.split(",") if p.strip())
    return out or default


@dataclass(frozen=True)
class WatchConfig:
    namespace: str = DEFAULT_NAMESPACE
    output_root: str = DEFAULT_OUTPUT_DIR

    # Discovery loop timing
    poll_interval_seconds: float = 5.0
    idle_timeout_seconds: float = 600.0

    # Bounded wait for a job's pod
    pod_wait_timeout_seconds: float = 60.0
    pod_wait_interval_seconds: float = 2.0

    # Init-container file harvest
    target_dirs: Tuple[str, ...] = DEFAULT_TARGET_DIRS
    harvest_suffix: str = DEFAULT_HARVEST_SUFFIX

    # Label Kubernetes puts on pods created by a Job
    job_label_key: str = DEFAULT_JOB_LABEL_KEY

    def job_selector(self, job_name: str) -> str:
        return f"{self.job_label_key}={job_name}"

    def with_overrides(
        self,
        *,
        namespace: Optional[str] = None,
        output_root: Optional[str] = None,
        poll_interval_seconds: Optional[float] = None,
        idle_timeout_seconds: Optional[float] = None,
        pod_wait_timeout_seconds: Optional[float] = None,
        target_dirs: Optional[Tuple[str, ...]] = None,
    ) -> "WatchConfig":
        """Return a copy with CLI overrides applied (None means keep the current value)."""
        changes = {}
        if namespace:
            changes["namespace"] = namespace.strip()
        if output_root:
            changes["output_root"] = output_root
        if poll_interval_seconds is not None:
            changes["poll_interval_seconds"] = max(0.0, float(poll_interval_seconds))
        if idle_timeout_seconds is not None:
            changes["idle_timeout_seconds"] = max(0.0, float(idle_timeout_seconds))
        if pod_wait_timeout_seconds is not None:
            changes["pod_wait_timeout_seconds"] = max(0.0, float(pod_wait_timeout_seconds))
        if target_dirs:
            changes["target_dirs"] = tuple(target_dirs)
        return replace(self, **changes)


def load_watch_config() -> WatchConfig:
    """
    Load watcher settings from the environment.

    Invalid numbers fall back to defaults; negative numbers are clamped to zero.
    """
    interval = _env_float("POD_WAIT_INTERVAL_SECONDS", 2.0)
    return WatchConfig(
        namespace=_env_str("WATCH_NAMESPACE", DEFAULT_NAMESPACE),
        output_root=_env_str("OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
        poll_interval_seconds=_env_float("POLL_INTERVAL_SECONDS", 5.0),
        idle_timeout_seconds=_env_float("IDLE_TIMEOUT_SECONDS", 600.0),
        pod_wait_timeout_seconds=_env_float("POD_WAIT_TIMEOUT_SECONDS", 60.0),
        pod_wait_interval_seconds=max(MIN_POD_WAIT_INTERVAL_SECONDS, interval),
        target_dirs=_env_csv("TARGET_DIRS", DEFAULT_TARGET_DIRS),
        harvest_suffix=(os.getenv("HARVEST_SUFFIX") or DEFAULT_HARVEST_SUFFIX),
        job_label_key=_env_str("JOB_LABEL_KEY", DEFAULT_JOB_LABEL_KEY),
    )
