"""Kubernetes API access for the watcher: read-only queries plus in-container listing and copy."""

from __future__ import annotations

import base64
import io
import logging
import posixpath
import re
import shlex
import tarfile
import threading
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import yaml

logger = logging.getLogger(__name__)

_core_v1_api = None
_batch_v1_api = None
_api_client = None
_config_loaded = False
_init_lock = threading.Lock()

_KIND_MAP = {
    "pod": "Pod",
    "job": "Job",
    "cronjob": "CronJob",
    "node": "Node",
    "namespace": "Namespace",
}


@runtime_checkable
class ClusterQuery(Protocol):
    def list_jobs(self, namespace: str) -> List[str]: ...

    def describe_job(self, name: str, namespace: str) -> str: ...

    def get_job_manifest(self, name: str, namespace: str) -> str: ...

    def list_events(self, namespace: str, object_name: str, object_kind: str) -> str: ...

    def list_pods_by_label(self, namespace: str, selector: str) -> Optional[str]: ...

    def get_pod_field(self, pod_name: str, namespace: str, field_path: str) -> Optional[str]: ...

    def describe_pod(self, pod_name: str, namespace: str) -> str: ...

    def get_pod_manifest(self, pod_name: str, namespace: str) -> str: ...

    def exec_list(self, pod_name: str, namespace: str, container: str, directory: str) -> List[str]: ...

    def copy_file(self, namespace: str, pod_name: str, container: str, remote_path: str, local_path: str) -> bool: ...

    def get_aggregated_logs(
        self,
        job_name: str,
        namespace: str,
        all_containers: bool = True,
        full_history: bool = True,
    ) -> str: ...


class DefaultClusterQuery:
    def __init__(self, *, job_label_key: str = "job-name") -> None:
        self.job_label_key = job_label_key

    def list_jobs(self, namespace: str) -> List[str]:
        return list_jobs(namespace)

    def describe_job(self, name: str, namespace: str) -> str:
        return describe_job(name, namespace)

    def get_job_manifest(self, name: str, namespace: str) -> str:
        return get_job_manifest(name, namespace)

    def list_events(self, namespace: str, object_name: str, object_kind: str) -> str:
        return list_events(namespace, object_name, object_kind)

    def list_pods_by_label(self, namespace: str, selector: str) -> Optional[str]:
        return list_pods_by_label(namespace, selector)

    def get_pod_field(self, pod_name: str, namespace: str, field_path: str) -> Optional[str]:
        return get_pod_field(pod_name, namespace, field_path)

    def describe_pod(self, pod_name: str, namespace: str) -> str:
        return describe_pod(pod_name, namespace)

    def get_pod_manifest(self, pod_name: str, namespace: str) -> str:
        return get_pod_manifest(pod_name, namespace)

    def exec_list(self, pod_name: str, namespace: str, container: str, directory: str) -> List[str]:
        return exec_list(pod_name, namespace, container, directory)

    def copy_file(self, namespace: str, pod_name: str, container: str, remote_path: str, local_path: str) -> bool:
        return copy_file(namespace, pod_name, container, remote_path, local_path)

    def get_aggregated_logs(
        self,
        job_name: str,
        namespace: str,
        all_containers: bool = True,
        full_history: bool = True,
    ) -> str:
        return get_aggregated_logs(
            job_name,
            namespace,
            all_containers=all_containers,
            full_history=full_history,
            selector=f"{self.job_label_key}={job_name}",
        )


def get_cluster_query(*, job_label_key: str = "job-name") -> ClusterQuery:
    """Seam for swapping the cluster query implementation (tests use a scripted double)."""
    return DefaultClusterQuery(job_label_key=job_label_key)


def _ensure_config_loaded() -> None:
    """Load in-cluster config, falling back to kubeconfig. Caller holds `_init_lock`."""
    global _config_loaded
    if _config_loaded:
        return

    # Import lazily so the rest of the package (and its tests) work without cluster access.
    try:
        from kubernetes import config
    except Exception as import_err:
        raise Exception(f"Kubernetes client not available: {import_err}")

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    _config_loaded = True


def _get_core_v1():
    """Return a cached CoreV1Api client (thread-safe lazy init)."""
    global _core_v1_api
    if _core_v1_api is not None:
        return _core_v1_api

    with _init_lock:
        if _core_v1_api is not None:
            return _core_v1_api
        _ensure_config_loaded()
        from kubernetes import client

        _core_v1_api = client.CoreV1Api()
        return _core_v1_api


def _get_batch_v1():
    """Return a cached BatchV1Api client (thread-safe lazy init)."""
    global _batch_v1_api
    if _batch_v1_api is not None:
        return _batch_v1_api

    with _init_lock:
        if _batch_v1_api is not None:
            return _batch_v1_api
        _ensure_config_loaded()
        from kubernetes import client

        _batch_v1_api = client.BatchV1Api()
        return _batch_v1_api


def _get_api_client():
    """ApiClient used only for `sanitize_for_serialization` (no network)."""
    global _api_client
    if _api_client is not None:
        return _api_client
    from kubernetes import client

    _api_client = client.ApiClient()
    return _api_client


def _to_plain(obj: Any) -> Any:
    """Convert a kubernetes model object into plain JSON-style data (camelCase keys, ISO timestamps)."""
    if obj is None or isinstance(obj, (dict, list, str, int, float, bool)):
        return obj
    return _get_api_client().sanitize_for_serialization(obj)


def to_yaml(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)


def resolve_field_path(data: Any, field_path: str) -> Any:
    """
    Resolve a dotted path with optional list indices against plain data.

    Accepts jsonpath-like forms: `spec.initContainers[0].name`, `.spec.initContainers[0].name`
    and `{.spec.initContainers[0].name}`. Missing keys or out-of-range indices yield None.
    """
    path = (field_path or "").strip()
    if path.startswith("{") and path.endswith("}"):
        path = path[1:-1]
    path = path.strip().lstrip(".")
    if not path:
        return data

    cur = data
    for part in path.split("."):
        m = re.fullmatch(r"([^\[\]]*)((?:\[\d+\])*)", part)
        if not m:
            return None
        key, indices = m.group(1), m.group(2)
        if key:
            if not isinstance(cur, dict):
                return None
            cur = cur.get(key)
        for idx in re.findall(r"\[(\d+)\]", indices):
            if not isinstance(cur, list):
                return None
            i = int(idx)
            if i >= len(cur):
                return None
            cur = cur[i]
        if cur is None:
            return None
    return cur


def parse_listing(output: Optional[str]) -> List[str]:
    """Split newline-delimited `ls -1` output into non-blank entries, preserving order."""
    if not output:
        return []
    return [line.strip() for line in str(output).splitlines() if line.strip()]


def _strip_dot_slash(name: str) -> str:
    return name[2:] if name.startswith("./") else name


def extract_tar_member(tar_bytes: bytes, member_name: str) -> bytes:
    """Return the content of a single regular file from an in-memory tar archive."""
    with tarfile.open(fileobj=io.BytesIO(tar_bytes), mode="r:*") as tar:
        wanted = _strip_dot_slash(member_name)
        for member in tar.getmembers():
            if _strip_dot_slash(member.name) != wanted:
                continue
            if not member.isfile():
                raise Exception(f"{member_name} is not a regular file")
            fh = tar.extractfile(member)
            if fh is None:
                raise Exception(f"{member_name} has no content")
            return fh.read()
    raise Exception(f"{member_name} not found in archive")


def list_jobs(namespace: str) -> List[str]:
    """
    List Job names in a namespace, in the order the API returns them.

    Returns:
        List of job names (may be empty)
    """
    try:
        batch = _get_batch_v1()
        job_list = batch.list_namespaced_job(namespace=namespace)
        names: List[str] = []
        for job in job_list.items or []:
            name = getattr(getattr(job, "metadata", None), "name", None)
            if name:
                names.append(name)
        return names
    except Exception as e:
        raise Exception(f"Failed to list jobs: {str(e)}")


def _event_dicts(namespace: str, object_name: str, object_kind: str) -> List[Dict[str, Any]]:
    v1 = _get_core_v1()
    kind = _KIND_MAP.get((object_kind or "").strip().lower(), (object_kind or "").strip())
    field_selector = f"involvedObject.kind={kind},involvedObject.name={object_name}"
    ev_list = v1.list_namespaced_event(namespace=namespace, field_selector=field_selector)

    events: List[Dict[str, Any]] = [_to_plain(ev) for ev in ev_list.items or []]

    # Oldest first, like `kubectl get events`
    def _ts_key(e: Dict[str, Any]) -> str:
        return str(e.get("lastTimestamp") or e.get("eventTime") or e.get("firstTimestamp") or "")

    events.sort(key=_ts_key)
    return events


def _event_lines(events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for e in events:
        out.append(
            {
                "type": e.get("type"),
                "reason": e.get("reason"),
                "age": e.get("lastTimestamp") or e.get("eventTime") or e.get("firstTimestamp"),
                "from": (e.get("source") or {}).get("component") or e.get("reportingComponent"),
                "message": e.get("message"),
            }
        )
    return out


def list_events(namespace: str, object_name: str, object_kind: str) -> str:
    """
    Events whose involved object matches `object_name` and `object_kind`, rendered as a YAML List.
    """
    try:
        events = _event_dicts(namespace, object_name, object_kind)
        return to_yaml({"apiVersion": "v1", "kind": "List", "items": events})
    except Exception as e:
        raise Exception(f"Failed to fetch events: {str(e)}")


def get_job_manifest(name: str, namespace: str) -> str:
    try:
        batch = _get_batch_v1()
        job = batch.read_namespaced_job(name=name, namespace=namespace)
        data = _to_plain(job) or {}
        data.setdefault("apiVersion", "batch/v1")
        data.setdefault("kind", "Job")
        return to_yaml(data)
    except Exception as e:
        raise Exception(f"Failed to fetch job manifest: {str(e)}")


def _container_summary(c: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": c.get("name"),
        "image": c.get("image"),
        "command": c.get("command"),
        "args": c.get("args"),
    }


def describe_job(name: str, namespace: str) -> str:
    """
    Human-oriented summary of a Job (identity, status counters, conditions, template, events).
    """
    try:
        batch = _get_batch_v1()
        job = _to_plain(batch.read_namespaced_job(name=name, namespace=namespace)) or {}
        meta = job.get("metadata") or {}
        spec = job.get("spec") or {}
        status = job.get("status") or {}
        pod_spec = (spec.get("template") or {}).get("spec") or {}

        try:
            events = _event_lines(_event_dicts(namespace, name, "Job"))
        except Exception as ev_err:
            events = [{"error": f"events unavailable: {ev_err}"}]

        summary = {
            "Name": meta.get("name"),
            "Namespace": meta.get("namespace"),
            "Labels": meta.get("labels") or {},
            "Annotations": meta.get("annotations") or {},
            "Created": meta.get("creationTimestamp"),
            "Parallelism": spec.get("parallelism"),
            "Completions": spec.get("completions"),
            "Backoff Limit": spec.get("backoffLimit"),
            "Active Deadline Seconds": spec.get("activeDeadlineSeconds"),
            "Start Time": status.get("startTime"),
            "Completed At": status.get("completionTime"),
            "Pods Statuses": {
                "Active": status.get("active") or 0,
                "Succeeded": status.get("succeeded") or 0,
                "Failed": status.get("failed") or 0,
            },
            "Conditions": [
                {
                    "Type": c.get("type"),
                    "Status": c.get("status"),
                    "Reason": c.get("reason"),
                    "Message": c.get("message"),
                }
                for c in status.get("conditions") or []
            ],
            "Pod Template": {
                "Init Containers": [_container_summary(c) for c in pod_spec.get("initContainers") or []],
                "Containers": [_container_summary(c) for c in pod_spec.get("containers") or []],
                "Service Account": pod_spec.get("serviceAccountName"),
            },
            "Events": events,
        }
        return to_yaml(summary)
    except Exception as e:
        raise Exception(f"Failed to describe job: {str(e)}")


def list_pods_by_label(namespace: str, selector: str) -> Optional[str]:
    """
    Name of the first pod matching `selector`, or None when no pod exists yet.
    """
    try:
        v1 = _get_core_v1()
        pod_list = v1.list_namespaced_pod(namespace=namespace, label_selector=selector)
        for pod in pod_list.items or []:
            name = getattr(getattr(pod, "metadata", None), "name", None)
            if name:
                return name
        return None
    except Exception as e:
        raise Exception(f"Failed to list pods: {str(e)}")


def _read_pod(pod_name: str, namespace: str) -> Dict[str, Any]:
    v1 = _get_core_v1()
    data = _to_plain(v1.read_namespaced_pod(name=pod_name, namespace=namespace)) or {}
    data.setdefault("apiVersion", "v1")
    data.setdefault("kind", "Pod")
    return data


def get_pod_field(pod_name: str, namespace: str, field_path: str) -> Optional[str]:
    """
    Read one scalar field from a pod (e.g. `spec.initContainers[0].name`).

    Returns None if the field is absent.
    """
    try:
        value = resolve_field_path(_read_pod(pod_name, namespace), field_path)
    except Exception as e:
        raise Exception(f"Failed to read pod field: {str(e)}")
    if value is None or isinstance(value, (dict, list)):
        return None
    s = str(value).strip()
    return s or None


def get_pod_manifest(pod_name: str, namespace: str) -> str:
    try:
        return to_yaml(_read_pod(pod_name, namespace))
    except Exception as e:
        raise Exception(f"Failed to fetch pod manifest: {str(e)}")


def _container_state(status: Dict[str, Any]) -> Dict[str, Any]:
    state = status.get("state") or {}
    for key in ("running", "waiting", "terminated"):
        if state.get(key) is not None:
            detail = state.get(key) or {}
            return {"State": key.capitalize(), "Reason": detail.get("reason"), "Exit Code": detail.get("exitCode")}
    return {"State": "Unknown"}


def describe_pod(pod_name: str, namespace: str) -> str:
    try:
        pod = _read_pod(pod_name, namespace)
        meta = pod.get("metadata") or {}
        spec = pod.get("spec") or {}
        status = pod.get("status") or {}

        def _containers(specs: List[Dict[str, Any]], statuses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            by_name = {s.get("name"): s for s in statuses or []}
            out: List[Dict[str, Any]] = []
            for c in specs or []:
                st = by_name.get(c.get("name")) or {}
                row = _container_summary(c)
                row.update(_container_state(st))
                row["Ready"] = st.get("ready")
                row["Restart Count"] = st.get("restartCount")
                out.append(row)
            return out

        try:
            events = _event_lines(_event_dicts(namespace, pod_name, "Pod"))
        except Exception as ev_err:
            events = [{"error": f"events unavailable: {ev_err}"}]

        summary = {
            "Name": meta.get("name"),
            "Namespace": meta.get("namespace"),
            "Node": spec.get("nodeName"),
            "Start Time": status.get("startTime"),
            "Labels": meta.get("labels") or {},
            "Status": status.get("phase"),
            "Reason": status.get("reason"),
            "Message": status.get("message"),
            "Init Containers": _containers(spec.get("initContainers"), status.get("initContainerStatuses")),
            "Containers": _containers(spec.get("containers"), status.get("containerStatuses")),
            "Conditions": [{"Type": c.get("type"), "Status": c.get("status")} for c in status.get("conditions") or []],
            "Events": events,
        }
        return to_yaml(summary)
    except Exception as e:
        raise Exception(f"Failed to describe pod: {str(e)}")


def _exec(pod_name: str, namespace: str, container: str, command: List[str]) -> str:
    from kubernetes.stream import stream

    v1 = _get_core_v1()
    resp = stream(
        v1.connect_get_namespaced_pod_exec,
        pod_name,
        namespace,
        container=container,
        command=command,
        stderr=False,
        stdin=False,
        stdout=True,
        tty=False,
    )
    return resp or ""


def exec_list(pod_name: str, namespace: str, container: str, directory: str) -> List[str]:
    """
    List entries of `directory` inside `container` (`ls -1`).

    A missing or empty directory yields an empty list (stderr is not captured).
    """
    try:
        return parse_listing(_exec(pod_name, namespace, container, ["ls", "-1", directory]))
    except Exception as e:
        raise Exception(f"Failed to list {directory} in {pod_name}/{container}: {str(e)}")


def copy_file(namespace: str, pod_name: str, container: str, remote_path: str, local_path: str) -> bool:
    """
    Copy one remote file to `local_path` (tar + base64 over exec, like `kubectl cp`).

    Returns False on any failure; never raises.
    """
    remote_dir = posixpath.dirname(remote_path) or "/"
    remote_name = posixpath.basename(remote_path)
    command = [
        "/bin/sh",
        "-c",
        f"tar -C {shlex.quote(remote_dir)} -cf - {shlex.quote(remote_name)} | base64",
    ]
    try:
        encoded = _exec(pod_name, namespace, container, command)
        if not encoded.strip():
            logger.warning(f"No data received copying {remote_path} from {pod_name}/{container}")
            return False
        tar_bytes = base64.b64decode("".join(encoded.split()))
        content = extract_tar_member(tar_bytes, remote_name)
        with open(local_path, "wb") as f:
            f.write(content)
        return True
    except Exception as e:
        logger.warning(f"Failed to copy {remote_path} from {pod_name}/{container}: {e}")
        return False


def read_pod_log(
    pod_name: str,
    namespace: str,
    container: Optional[str] = None,
    tail_lines: Optional[int] = None,
) -> Optional[str]:
    """Read logs from a pod container (best-effort). None if unavailable."""
    try:
        v1 = _get_core_v1()
        kwargs: Dict[str, Any] = {"name": pod_name, "namespace": namespace}
        if container:
            kwargs["container"] = container
        if tail_lines is not None:
            kwargs["tail_lines"] = tail_lines
        return v1.read_namespaced_pod_log(**kwargs)
    except Exception:
        return None


def get_aggregated_logs(
    job_name: str,
    namespace: str,
    all_containers: bool = True,
    full_history: bool = True,
    *,
    selector: Optional[str] = None,
) -> str:
    """
    Logs of every pod of a Job, each line prefixed with `[pod/<pod>/<container>]`.

    With `all_containers`, init containers are included before regular containers.
    Without `full_history`, only the last 200 lines of each container are read.
    """
    try:
        v1 = _get_core_v1()
        pod_list = v1.list_namespaced_pod(namespace=namespace, label_selector=selector or f"job-name={job_name}")
        pods = [_to_plain(p) for p in pod_list.items or []]
    except Exception as e:
        raise Exception(f"Failed to list pods for job logs: {str(e)}")

    pods.sort(key=lambda p: str((p.get("metadata") or {}).get("creationTimestamp") or ""))
    tail = None if full_history else 200

    chunks: List[str] = []
    for pod in pods:
        pod_name = (pod.get("metadata") or {}).get("name")
        spec = pod.get("spec") or {}
        containers = [c.get("name") for c in spec.get("containers") or []]
        if all_containers:
            containers = [c.get("name") for c in spec.get("initContainers") or []] + containers
        else:
            containers = containers[:1]
        for container in containers:
            text = read_pod_log(pod_name, namespace, container=container, tail_lines=tail)
            if not text:
                continue
            prefix = f"[pod/{pod_name}/{container}] "
            chunks.extend(prefix + line for line in text.splitlines())
    return "\n".join(chunks) + ("\n" if chunks else "")
