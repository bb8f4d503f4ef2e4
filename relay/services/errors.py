class RelayError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RelayError):
    status_code = 400


class NotFoundError(RelayError):
    status_code = 404


class UploadError(RelayError):
    """Rejected upload: empty body, oversized file or unsupported type."""

    status_code = 400


class InternalError(RelayError):
    status_code = 500
