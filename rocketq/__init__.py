"""Consumer-side building blocks: errors, messages, allocation strategies, statistics and process queues."""

__version__ = "0.1.0"

__all__ = ["errors", "message", "strategy", "statistics", "process_queue"]