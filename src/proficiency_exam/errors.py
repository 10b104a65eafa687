"""Domain errors raised by services and rendered by the API exception handler.

Every error carries an HTTP status, a machine-readable code, a human message
and an optional ``extra`` payload that is merged into the JSON response body.
Authorization failures deliberately use generic messages so responses do not
reveal whether a token, user or session exists.
"""

from typing import Any, Dict, Optional


class ExamError(Exception):
    """Base class for all domain errors"""

    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"success": False, "error": self.code, "message": self.message}
        body.update(self.extra)
        return body


class ValidationError(ExamError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request data"


class Unauthorized(ExamError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"


class InvalidCredentials(Unauthorized):
    code = "invalid_credentials"
    default_message = "Invalid email or password"


class Forbidden(ExamError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class PaymentRequired(ExamError):
    status_code = 402
    code = "payment_required"
    default_message = "Payment required to access test session"

    def __init__(self, payment_status: str, message: Optional[str] = None):
        super().__init__(message, paymentStatus=payment_status)
        self.payment_status = payment_status


class NotFound(ExamError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class Conflict(ExamError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class DuplicateEmail(Conflict):
    code = "duplicate_email"
    default_message = "User with this email already exists"


class SessionAlreadyCompleted(Conflict):
    code = "session_already_completed"
    default_message = "Session already completed"


class ExternalServiceError(ExamError):
    status_code = 502
    code = "external_service_error"
    default_message = "Payment provider unavailable"


class PaymentVerificationError(ExamError):
    """A payment attempt that ended terminally.

    The temporary registration has been deleted by the time this is raised,
    so clients are told to restart registration (``requireLogout``).
    """

    status_code = 400
    code = "payment_verification_failed"
    default_message = "Payment verification failed"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        extra.setdefault("status", "failed")
        extra.setdefault("requireLogout", True)
        super().__init__(message, **extra)


class RegistrationExpiredOrInvalid(PaymentVerificationError):
    code = "registration_expired_or_invalid"
    default_message = "Registration expired or invalid. Please register again."


class PaymentAmountInvalid(PaymentVerificationError):
    code = "payment_amount_invalid"
    default_message = "Payment amount outside acceptable range"


class PaymentFailed(PaymentVerificationError):
    code = "payment_failed"
    default_message = "Payment failed. Please try again."


class InvalidPaymentReference(PaymentVerificationError):
    code = "invalid_payment_reference"
    default_message = "Invalid payment reference"
