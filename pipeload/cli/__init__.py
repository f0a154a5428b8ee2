"""Command line interface for pipeload."""
