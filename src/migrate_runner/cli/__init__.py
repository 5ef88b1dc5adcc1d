"""Command-line interface for migrate-runner."""
