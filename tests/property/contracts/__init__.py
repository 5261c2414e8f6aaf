"""Property tests for policy validation."""
