# architect/errors.py

GENERIC_ERROR_MESSAGE = "An error occurred"


class ArchitectError(Exception):
    """
    Base of every error the request boundary knows how to answer.

    status_code / public_message are what the caller sees; the exception's own
    message stays in the logs unless the subclass says it is safe to surface.
    """

    status_code: int = 500
    public_message: str = GENERIC_ERROR_MESSAGE
    surface_message: bool = False

    def to_payload(self) -> tuple[int, dict]:
        message = str(self) if self.surface_message and str(self) else self.public_message
        return self.status_code, {"error": message}


class ValidationError(ArchitectError):
    status_code = 400
    public_message = "Invalid request"
    surface_message = True


class AuthorizationError(ArchitectError):
    status_code = 403
    public_message = "Access denied"


class NotFoundError(ArchitectError):
    status_code = 404
    public_message = "Resource not found"


class UpstreamRateLimited(ArchitectError):
    status_code = 429
    public_message = "Rate limit exceeded. Please try again in a moment."


class UpstreamQuotaExceeded(ArchitectError):
    status_code = 402
    public_message = "Payment required. Please add credits to your workspace."


class SynthesisFailure(ArchitectError):
    status_code = 500


class PersistenceFailure(ArchitectError):
    status_code = 500


class ParseFailure(ArchitectError):
    # Raised and recovered inside the parsing/grading stages only.
    status_code = 500


def error_payload(exc: BaseException) -> tuple[int, dict]:
    if isinstance(exc, ArchitectError):
        return exc.to_payload()
    return 500, {"error": GENERIC_ERROR_MESSAGE}
