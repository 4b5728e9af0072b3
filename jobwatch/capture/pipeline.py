from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from jobwatch.capture.harvest import harvest_target_dirs
from jobwatch.capture.pod_wait import wait_for_job_pod
from jobwatch.config import WatchConfig
from jobwatch.core.models import (
    CaptureReport,
    DiagnosticsRun,
    JobRecord,
    StepResult,
    step_failed,
    step_ok,
    step_skipped,
)
from jobwatch.core.naming import harvest_local_name, target_subdir_name
from jobwatch.providers.k8s_provider import ClusterQuery
from jobwatch.storage.local_store import LocalStorage

logger = logging.getLogger(__name__)

INIT_CONTAINER_FIELD = "spec.initContainers[0].name"

DESCRIBE_JOB_FILE = "describe-job.yaml"
EVENTS_FILE = "events.yaml"
JOB_MANIFEST_FILE = "job.yaml"
DESCRIBE_POD_FILE = "describe-pod.yaml"
POD_MANIFEST_FILE = "pod-manifest.yaml"
LOGS_FILE = "logs.log"


class DiagnosticsCapture:
    """
    Ordered, best-effort capture of one job's diagnostics.

    Steps: directory setup -> static capture (describe, events, manifest) -> bounded pod
    wait -> init-container resolution -> pod state -> init-container file harvest -> logs.

    Every step yields a `StepResult`; a failed or skipped step never stops the ones after it,
    and log capture always runs last, exactly once.
    """

    def __init__(
        self,
        cluster: ClusterQuery,
        storage: LocalStorage,
        config: WatchConfig,
        *,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.cluster = cluster
        self.storage = storage
        self.config = config
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep

    def new_run(self, job: JobRecord) -> DiagnosticsRun:
        return DiagnosticsRun(job_name=job.name, namespace=job.namespace, output_dir=self.storage.path(job.name))

    def __call__(self, job: JobRecord) -> CaptureReport:
        return self.run(self.new_run(job))

    def run(self, run: DiagnosticsRun) -> CaptureReport:
        report = CaptureReport(job_name=run.job_name, output_dir=run.output_dir)
        logger.info(f"[{run.job_name}] Capturing diagnostics into {run.output_dir}")

        report.steps.append(self._setup_dirs(run))
        report.steps.extend(self._static_capture(run))

        wait = wait_for_job_pod(
            self.cluster,
            namespace=run.namespace,
            selector=self.config.job_selector(run.job_name),
            timeout_seconds=self.config.pod_wait_timeout_seconds,
            interval_seconds=self.config.pod_wait_interval_seconds,
            clock=self._clock,
            sleep=self._sleep,
        )
        if wait.resolved:
            run.pod_name = wait.pod_name
            report.pod_name = wait.pod_name
            report.steps.append(step_ok("pod-wait"))
            report.steps.extend(self._pod_capture(run, report))
        else:
            reason = f"no pod found within {self.config.pod_wait_timeout_seconds:g}s"
            logger.warning(f"[{run.job_name}] {reason}; skipping pod state and file harvest")
            report.steps.append(step_failed("pod-wait", reason))
            for step in ("init-container", "describe-pod", "pod-manifest", "harvest"):
                report.steps.append(step_skipped(step, reason))

        report.steps.append(self._capture_logs(run))

        c = report.counts()
        logger.info(
            f"[{run.job_name}] Capture finished: {c['ok']} ok, {c['skipped']} skipped, {c['failed']} failed"
        )
        return report

    def _setup_dirs(self, run: DiagnosticsRun) -> StepResult:
        try:
            self.storage.ensure_dir(run.job_name)
            for target_dir in self.config.target_dirs:
                self.storage.ensure_dir(f"{run.job_name}/{target_subdir_name(target_dir)}")
        except Exception as e:
            logger.error(f"[{run.job_name}] Failed to create output directories: {e}")
            return step_failed("setup", str(e))
        return step_ok("setup")

    def _write(self, run: DiagnosticsRun, step: str, filename: str, fetch: Callable[[], str]) -> StepResult:
        """Fetch one artifact and persist it under the job directory."""
        try:
            body = fetch()
        except Exception as e:
            logger.error(f"[{run.job_name}] {step}: {e}")
            return step_failed(step, str(e))
        try:
            self.storage.put_text(f"{run.job_name}/{filename}", body or "")
        except Exception as e:
            logger.error(f"[{run.job_name}] {step}: failed to write {filename}: {e}")
            return step_failed(step, f"write failed: {e}")
        logger.info(f"[{run.job_name}] Saved {filename}")
        return step_ok(step)

    def _static_capture(self, run: DiagnosticsRun) -> List[StepResult]:
        name, ns = run.job_name, run.namespace
        return [
            self._write(run, "describe-job", DESCRIBE_JOB_FILE, lambda: self.cluster.describe_job(name, ns)),
            self._write(run, "events", EVENTS_FILE, lambda: self.cluster.list_events(ns, name, "Job")),
            self._write(run, "job-manifest", JOB_MANIFEST_FILE, lambda: self.cluster.get_job_manifest(name, ns)),
        ]

    def _resolve_init_container(self, run: DiagnosticsRun) -> StepResult:
        try:
            init_container = self.cluster.get_pod_field(run.pod_name or "", run.namespace, INIT_CONTAINER_FIELD)
        except Exception as e:
            logger.warning(f"[{run.job_name}] Could not read init container of {run.pod_name}: {e}")
            return step_failed("init-container", str(e))
        if not init_container:
            logger.warning(f"[{run.job_name}] Pod {run.pod_name} has no init container")
            return step_skipped("init-container", "pod has no init container")
        run.init_container = init_container
        logger.info(f"[{run.job_name}] Init container: {init_container}")
        return step_ok("init-container")

    def _pod_capture(self, run: DiagnosticsRun, report: CaptureReport) -> List[StepResult]:
        pod, ns, suffix = run.pod_name or "", run.namespace, self.config.harvest_suffix
        steps = [self._resolve_init_container(run)]
        report.init_container = run.init_container

        steps.append(
            self._write(
                run,
                "describe-pod",
                harvest_local_name(DESCRIBE_POD_FILE, suffix),
                lambda: self.cluster.describe_pod(pod, ns),
            )
        )
        steps.append(
            self._write(
                run,
                "pod-manifest",
                harvest_local_name(POD_MANIFEST_FILE, suffix),
                lambda: self.cluster.get_pod_manifest(pod, ns),
            )
        )

        if not run.init_container:
            steps.append(step_skipped("harvest", "no init container resolved"))
            return steps

        results, files = harvest_target_dirs(self.cluster, self.storage, run, self.config.target_dirs, suffix=suffix)
        steps.extend(results)
        report.harvested.extend(files)
        return steps

    def _capture_logs(self, run: DiagnosticsRun) -> StepResult:
        name, ns = run.job_name, run.namespace
        return self._write(
            run,
            "logs",
            LOGS_FILE,
            lambda: self.cluster.get_aggregated_logs(name, ns, all_containers=True, full_history=True),
        )
