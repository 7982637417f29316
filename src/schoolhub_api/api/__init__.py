"""HTTP API wiring: per-request service factories and the root router."""
