"""Command-line surface for headless-test-runner."""
