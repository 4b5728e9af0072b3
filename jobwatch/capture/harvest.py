"""Init-container file harvest.

Every target directory and every file is handled independently: a failed listing skips
one directory, a failed copy skips one file, and nothing here raises.
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from jobwatch.core.models import CapturedFile, DiagnosticsRun, StepResult, step_failed, step_ok, step_skipped
from jobwatch.core.naming import harvest_local_name, remote_file_path, target_subdir_name
from jobwatch.providers.k8s_provider import ClusterQuery
from jobwatch.storage.local_store import LocalStorage

logger = logging.getLogger(__name__)


def harvest_directory(
    cluster: ClusterQuery,
    storage: LocalStorage,
    run: DiagnosticsRun,
    target_dir: str,
    *,
    suffix: str,
) -> Tuple[StepResult, List[CapturedFile]]:
    step = f"harvest:{target_dir}"
    pod, container = run.pod_name or "", run.init_container or ""

    try:
        names = cluster.exec_list(pod, run.namespace, container, target_dir)
    except Exception as e:
        logger.warning(f"[{run.job_name}] Listing {target_dir} failed, skipping: {e}")
        return step_skipped(step, f"listing failed: {e}"), []

    names = [n.strip() for n in names or [] if n and n.strip()]
    if not names:
        logger.warning(f"[{run.job_name}] {target_dir} is empty or missing in {pod}/{container}")
        return step_skipped(step, "directory empty or missing"), []

    subdir = f"{run.job_name}/{target_subdir_name(target_dir)}"
    files: List[CapturedFile] = []
    for name in names:
        local_name = harvest_local_name(name, suffix)
        remote_path = remote_file_path(target_dir, name)
        copied = False
        try:
            copied = bool(
                cluster.copy_file(run.namespace, pod, container, remote_path, storage.path(f"{subdir}/{local_name}"))
            )
        except Exception as e:
            logger.warning(f"[{run.job_name}] Copy of {remote_path} raised: {e}")
        if copied:
            logger.info(f"[{run.job_name}] Copied {remote_path} -> {subdir}/{local_name}")
        else:
            logger.warning(f"[{run.job_name}] Failed to copy {remote_path}")
        files.append(CapturedFile(remote_path=remote_path, remote_name=name, local_name=local_name, copied=copied))

    failed = [f.remote_name for f in files if not f.copied]
    if failed:
        return step_failed(step, f"{len(failed)}/{len(files)} copies failed: {', '.join(failed)}"), files
    return step_ok(step), files


def harvest_target_dirs(
    cluster: ClusterQuery,
    storage: LocalStorage,
    run: DiagnosticsRun,
    target_dirs: Sequence[str],
    *,
    suffix: str,
) -> Tuple[List[StepResult], List[CapturedFile]]:
    results: List[StepResult] = []
    files: List[CapturedFile] = []
    for target_dir in target_dirs:
        res, got = harvest_directory(cluster, storage, run, target_dir, suffix=suffix)
        results.append(res)
        files.extend(got)
    return results, files
