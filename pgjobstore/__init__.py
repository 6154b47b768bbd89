"""Row models, NOTIFY payload decoding and connection pooling for a PostgreSQL job queue."""

__version__ = "0.2.0"
__all__ = ["models", "notify_event", "pool"]