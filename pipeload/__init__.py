"""pipeload - pipe telescoping, cross-section packing and container planning."""

__version__ = "0.1.0"
