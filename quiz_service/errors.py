"""Error taxonomy for the attempt engine. Each error knows its HTTP status."""


class QuizError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {"detail": self.message, "error": self.code}


class InvalidInput(QuizError):
    status_code = 400
    code = "invalid_input"

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.errors = errors or {}

    def payload(self) -> dict:
        out = super().payload()
        if self.errors:
            out["errors"] = self.errors
        return out


class NotFound(QuizError):
    status_code = 404
    code = "not_found"


class AlreadySubmitted(QuizError):
    status_code = 409
    code = "already_submitted"

    def __init__(self, message: str = "Quiz already submitted"):
        super().__init__(message)


class Expired(QuizError):
    status_code = 410
    code = "expired"

    def __init__(self, message: str = "Quiz time has expired"):
        super().__init__(message)

    def payload(self) -> dict:
        out = super().payload()
        out["expired"] = True
        return out


class StoreFailure(QuizError):
    status_code = 503
    code = "store_failure"

    def payload(self) -> dict:
        out = super().payload()
        out["retryable"] = True
        return out
