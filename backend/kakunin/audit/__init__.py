from .service import append_history, list_history

__all__ = ["append_history", "list_history"]
