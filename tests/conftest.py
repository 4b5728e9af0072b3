"""
Pytest config.

Pins the repo root on sys.path so `import jobwatch` works even when a global `pytest`
entrypoint is used without installing the package.

Also provides a scripted cluster double and a fake clock so loop/pod-wait tests never
touch a real cluster or really sleep.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


class FakeClock:
    """Monotonic clock that only moves when `sleep` is called."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeClusterQuery:
    """
    Scripted stand-in for the cluster query layer.

    - `job_listings`: answers for successive `list_jobs` calls (the last one repeats);
      an Exception instance is raised instead of returned.
    - `pods`: selector -> (seconds after first lookup when the pod appears, pod name)
    - `init_containers`: pod -> init container name (missing/None means no init container)
    - `listings`: (pod, container, directory) -> filenames or Exception
    - `files`: remote path -> bytes; `copy_failures`: remote paths whose copy fails
    """

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        self.clock = clock or FakeClock()
        self.job_listings: List[Any] = [[]]
        self.pods: Dict[str, Tuple[float, str]] = {}
        self.init_containers: Dict[str, Optional[str]] = {}
        self.listings: Dict[Tuple[str, str, str], Any] = {}
        self.files: Dict[str, bytes] = {}
        self.copy_failures: set = set()
        self.logs: Dict[str, str] = {}
        self.failing: set = set()
        self.calls: List[Tuple[str, tuple]] = []
        self._list_jobs_calls = 0
        self._pod_lookup_started: Dict[str, float] = {}

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if method in self.failing:
            raise Exception(f"Failed to {method}: simulated API error")

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.calls if m == method)

    def list_jobs(self, namespace: str) -> List[str]:
        self._record("list_jobs", namespace)
        idx = min(self._list_jobs_calls, len(self.job_listings) - 1)
        self._list_jobs_calls += 1
        answer = self.job_listings[idx]
        if isinstance(answer, Exception):
            raise answer
        return list(answer)

    def describe_job(self, name: str, namespace: str) -> str:
        self._record("describe_job", name, namespace)
        return f"Name: {name}\nNamespace: {namespace}\n"

    def get_job_manifest(self, name: str, namespace: str) -> str:
        self._record("get_job_manifest", name, namespace)
        return f"apiVersion: batch/v1\nkind: Job\nmetadata:\n  name: {name}\n"

    def list_events(self, namespace: str, object_name: str, object_kind: str) -> str:
        self._record("list_events", namespace, object_name, object_kind)
        return "apiVersion: v1\nkind: List\nitems: []\n"

    def list_pods_by_label(self, namespace: str, selector: str) -> Optional[str]:
        self._record("list_pods_by_label", namespace, selector)
        started = self._pod_lookup_started.setdefault(selector, self.clock())
        if selector not in self.pods:
            return None
        appear_after, pod_name = self.pods[selector]
        return pod_name if self.clock() - started >= appear_after else None

    def get_pod_field(self, pod_name: str, namespace: str, field_path: str) -> Optional[str]:
        self._record("get_pod_field", pod_name, namespace, field_path)
        return self.init_containers.get(pod_name)

    def describe_pod(self, pod_name: str, namespace: str) -> str:
        self._record("describe_pod", pod_name, namespace)
        return f"Name: {pod_name}\n"

    def get_pod_manifest(self, pod_name: str, namespace: str) -> str:
        self._record("get_pod_manifest", pod_name, namespace)
        return f"apiVersion: v1\nkind: Pod\nmetadata:\n  name: {pod_name}\n"

    def exec_list(self, pod_name: str, namespace: str, container: str, directory: str) -> List[str]:
        self._record("exec_list", pod_name, namespace, container, directory)
        answer = self.listings.get((pod_name, container, directory), [])
        if isinstance(answer, Exception):
            raise answer
        return list(answer)

    def copy_file(self, namespace: str, pod_name: str, container: str, remote_path: str, local_path: str) -> bool:
        self._record("copy_file", namespace, pod_name, container, remote_path, local_path)
        if remote_path in self.copy_failures or remote_path not in self.files:
            return False
        Path(local_path).write_bytes(self.files[remote_path])
        return True

    def get_aggregated_logs(
        self,
        job_name: str,
        namespace: str,
        all_containers: bool = True,
        full_history: bool = True,
    ) -> str:
        self._record("get_aggregated_logs", job_name, namespace, all_containers, full_history)
        return self.logs.get(job_name, "")


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_cluster(fake_clock: FakeClock) -> FakeClusterQuery:
    return FakeClusterQuery(clock=fake_clock)
