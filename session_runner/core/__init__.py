"""Volume scheduling, manifest access, and the per-worker session loop."""
