"""Session orchestration and the caller-facing tracking service."""
