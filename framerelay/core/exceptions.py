"""Application errors rendered as JSON ``{"message": ...}`` responses."""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, **extra):
        self.message = message
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"message": self.message, **self.extra}


class BadRequestError(AppError):
    status_code = 400


class UpstreamError(AppError):
    """The upstream server could not be reached by the pass-through proxy."""

    status_code = 502
