"""Job discovery loop.

Polls the namespace for Job names, captures diagnostics for each name the first time it
appears, and stops once no new job has shown up for the idle timeout.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Set, Tuple

from jobwatch.config import WatchConfig
from jobwatch.core.idle import IdleClock
from jobwatch.core.models import CaptureReport, JobRecord, WatchSummary
from jobwatch.providers.k8s_provider import ClusterQuery

logger = logging.getLogger(__name__)

CaptureFn = Callable[[JobRecord], Any]


@dataclass
class DiscoveryLoopState:
    """Everything the loop remembers between cycles. In-memory only."""

    seen: Set[str] = field(default_factory=set)
    idle: IdleClock = field(default_factory=IdleClock)
    cycles: int = 0


@dataclass
class PollCycle:
    new_jobs: List[str] = field(default_factory=list)
    listing_ok: bool = True
    reports: List[CaptureReport] = field(default_factory=list)


def run_poll_cycle(
    state: DiscoveryLoopState,
    *,
    cluster: ClusterQuery,
    namespace: str,
    capture: CaptureFn,
) -> Tuple[DiscoveryLoopState, PollCycle]:
    """
    One discovery cycle: list jobs, then capture every unseen one in listing order.

    A name is marked seen (and the idle clock reset) before its capture starts, so a capture
    that blows up is never retried. A failed listing counts as "no jobs this cycle".
    """
    state.cycles += 1
    cycle = PollCycle()

    try:
        names = cluster.list_jobs(namespace)
    except Exception as e:
        logger.warning(f"Listing jobs in {namespace} failed, treating as empty: {e}")
        names = []
        cycle.listing_ok = False

    for name in names or []:
        if not name or name in state.seen:
            continue
        state.seen.add(name)
        state.idle.reset()
        cycle.new_jobs.append(name)

        logger.info(f"New job detected: {name}")
        try:
            report = capture(JobRecord(name=name, namespace=namespace))
        except Exception as e:
            logger.error(f"Diagnostics capture for {name} aborted: {e}", exc_info=True)
            continue
        if isinstance(report, CaptureReport):
            cycle.reports.append(report)

    return state, cycle


def run_watch_loop(
    config: WatchConfig,
    *,
    cluster: ClusterQuery,
    capture: CaptureFn,
    state: Optional[DiscoveryLoopState] = None,
    clock: Optional[Callable[[], float]] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> WatchSummary:
    """
    Run discovery cycles until the idle timeout expires in a cycle that found no new job.
    """
    sleep = sleep or time.sleep
    state = state or DiscoveryLoopState(idle=IdleClock(clock))
    summary = WatchSummary(namespace=config.namespace)

    logger.info(
        f"Watching namespace {config.namespace} for new jobs "
        f"(poll {config.poll_interval_seconds:g}s, idle timeout {config.idle_timeout_seconds:g}s)"
    )
    while True:
        state, cycle = run_poll_cycle(state, cluster=cluster, namespace=config.namespace, capture=capture)
        summary.cycles = state.cycles
        summary.jobs_processed.extend(cycle.new_jobs)
        summary.reports.extend(cycle.reports)

        if not cycle.new_jobs and state.idle.expired(config.idle_timeout_seconds):
            logger.info(
                f"No new jobs for {state.idle.elapsed():.0f}s (idle timeout {config.idle_timeout_seconds:g}s); stopping"
            )
            return summary

        sleep(config.poll_interval_seconds)
