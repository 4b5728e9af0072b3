"""Job diagnostics watcher.

Watches a namespace for new batch Jobs and captures a best-effort diagnostics bundle
(describe output, events, manifests, init-container files, logs) for each one.
"""
