from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from jobwatch.core.models import PodWaitResult
from jobwatch.providers.k8s_provider import ClusterQuery

logger = logging.getLogger(__name__)


def wait_for_job_pod(
    cluster: ClusterQuery,
    *,
    namespace: str,
    selector: str,
    timeout_seconds: float,
    interval_seconds: float,
    clock: Optional[Callable[[], float]] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> PodWaitResult:
    """
    Poll for the first pod matching `selector` until one appears or the timeout elapses.

    WAITING -> RESOLVED on the first non-empty answer, WAITING -> TIMED_OUT once at least
    `timeout_seconds` have elapsed. The final sleep is clipped to the remaining budget, so a
    timeout is reported no later than one sub-interval past the deadline. A failing pod
    listing counts as "not yet".
    """
    clock = clock or time.monotonic
    sleep = sleep or time.sleep
    timeout_s = max(0.0, float(timeout_seconds))
    interval_s = max(0.0, float(interval_seconds))

    start = clock()
    while True:
        try:
            pod_name = cluster.list_pods_by_label(namespace, selector)
        except Exception as e:
            logger.warning(f"Pod lookup for {selector} failed (will keep waiting): {e}")
            pod_name = None

        waited = clock() - start
        if pod_name:
            logger.info(f"Pod {pod_name} found for {selector} after {waited:.1f}s")
            return PodWaitResult(state="resolved", pod_name=pod_name, waited_seconds=waited)
        if waited >= timeout_s:
            return PodWaitResult(state="timed_out", waited_seconds=waited)

        sleep(min(interval_s, timeout_s - waited))
