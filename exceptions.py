"""
Exceptions raised by the thread and user actions.
"""


class ActionError(Exception):
    """Raised when a data-access action fails.

    The message always reads ``Failed to <action>: <cause>``.
    """

    def __init__(self, action: str, original_error: str = ""):
        self.action = action
        self.original_error = original_error
        message = f"Failed to {action}"
        if original_error:
            message += f": {original_error}"
        super().__init__(message)


class ThreadNotFoundError(ActionError):
    """Raised when a reply targets a thread that does not exist."""

    def __init__(self, thread_id: str = ""):
        self.thread_id = thread_id
        super().__init__("add comment to thread", "Thread not found")


class DatabaseUnavailableError(Exception):
    """Raised when the database connection is not configured."""
