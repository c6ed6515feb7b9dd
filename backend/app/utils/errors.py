class ChatError(Exception):
    """Base class for failures reported to clients as ``success: false``."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ChatError):
    status_code = 400


class NotFoundError(ChatError):
    status_code = 404


class UploadError(ChatError):
    status_code = 502


class PersistenceError(ChatError):
    status_code = 503


class SummarizationError(ChatError):
    status_code = 502
