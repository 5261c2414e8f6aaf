"""Property tests for backoff and retry."""
