"""ipgate: TLS-terminating HTTP server behind a client IP allow-list."""

__version__ = "1.0.0"
