#!/usr/bin/env python3
"""
Job Diagnostics Watcher
Watches a namespace for new batch Jobs and captures a diagnostics bundle for each one.
"""

import argparse
import logging
import sys
from typing import List, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

logger = logging.getLogger("jobwatch")


def _build_config(args: argparse.Namespace):
    from jobwatch.config import load_watch_config

    cfg = load_watch_config()
    return cfg.with_overrides(
        namespace=args.namespace,
        output_root=args.output_dir,
        poll_interval_seconds=args.poll_interval,
        idle_timeout_seconds=args.idle_timeout,
        pod_wait_timeout_seconds=args.pod_wait_timeout,
        target_dirs=tuple(args.target_dir) if args.target_dir else None,
    )


def list_jobs(cfg) -> List[str]:
    """Print job names in the configured namespace (listing order)."""
    from jobwatch.providers.k8s_provider import get_cluster_query

    names = get_cluster_query(job_label_key=cfg.job_label_key).list_jobs(cfg.namespace)
    if not names:
        print(f"No jobs found in namespace {cfg.namespace}")
        return []
    for name in names:
        print(name)
    return names


def capture_single_job(cfg, job_name: str):
    """Capture one job immediately, without the discovery loop."""
    from jobwatch.capture.pipeline import DiagnosticsCapture
    from jobwatch.core.models import JobRecord
    from jobwatch.providers.k8s_provider import get_cluster_query
    from jobwatch.storage.local_store import LocalStorage

    capture = DiagnosticsCapture(
        get_cluster_query(job_label_key=cfg.job_label_key), LocalStorage(base_dir=cfg.output_root), cfg
    )
    return capture(JobRecord(name=job_name, namespace=cfg.namespace))


def watch(cfg):
    """Run the discovery loop until the idle timeout."""
    from jobwatch.capture.pipeline import DiagnosticsCapture
    from jobwatch.providers.k8s_provider import get_cluster_query
    from jobwatch.storage.local_store import LocalStorage
    from jobwatch.watch.loop import run_watch_loop

    cluster = get_cluster_query(job_label_key=cfg.job_label_key)
    capture = DiagnosticsCapture(cluster, LocalStorage(base_dir=cfg.output_root), cfg)
    summary = run_watch_loop(cfg, cluster=cluster, capture=capture)

    logger.info(
        f"Watch finished after {summary.cycles} cycle(s); captured {len(summary.jobs_processed)} job(s)"
        + (f": {', '.join(summary.jobs_processed)}" if summary.jobs_processed else "")
    )
    for report in summary.reports:
        c = report.counts()
        logger.info(f"  {report.job_name}: {c['ok']} ok, {c['skipped']} skipped, {c['failed']} failed")
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Capture diagnostics for new batch Jobs in a Kubernetes namespace",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch the default namespace until no new job shows up for the idle timeout
  python main.py

  # Watch another namespace, writing bundles to ./out
  python main.py -n scans -o ./out --idle-timeout 300

  # Capture a single job right now
  python main.py --job scan-7
        """,
    )

    parser.add_argument("--watch", action="store_true", help="Watch for new jobs (default mode)")
    parser.add_argument("--job", metavar="NAME", help="Capture diagnostics for one job and exit")
    parser.add_argument("--list-jobs", action="store_true", help="List jobs in the namespace and exit")

    parser.add_argument("--namespace", "-n", help="Namespace to watch (env: WATCH_NAMESPACE)")
    parser.add_argument("--output-dir", "-o", help="Root directory for per-job bundles (env: OUTPUT_DIR)")
    parser.add_argument("--poll-interval", type=float, help="Seconds between job listings (env: POLL_INTERVAL_SECONDS)")
    parser.add_argument(
        "--idle-timeout", type=float, help="Stop after this many seconds without a new job (env: IDLE_TIMEOUT_SECONDS)"
    )
    parser.add_argument(
        "--pod-wait-timeout",
        type=float,
        help="Seconds to wait for a job's pod before skipping pod capture (env: POD_WAIT_TIMEOUT_SECONDS)",
    )
    parser.add_argument(
        "--target-dir",
        action="append",
        metavar="PATH",
        help="Init-container directory to harvest; repeatable (env: TARGET_DIRS, comma separated)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    cfg = _build_config(args)

    try:
        if args.list_jobs:
            list_jobs(cfg)
            return 0

        if args.job:
            capture_single_job(cfg, args.job.strip())
            return 0

        watch(cfg)
        return 0
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
