"""Per-job diagnostics capture.

- `pod_wait`: bounded wait for the job's pod
- `harvest`: best-effort file copy out of the init container
- `pipeline`: the ordered capture sequence producing a `CaptureReport`
"""

from .pipeline import DiagnosticsCapture

__all__ = ["DiagnosticsCapture"]
