"""Custom exceptions for the procurement core.

These exceptions provide structured error handling that:
- Separates internal details from user-facing messages
- Carries the HTTP status the API boundary should answer with
- Never performs partial mutation: raising means nothing was written
"""

from enum import Enum


class ProcurementError(Exception):
    """Base exception for recoverable conditions raised by the core."""

    status_code = 400
    default_user_message = "An error occurred while processing your request."

    def __init__(self, message: str, user_message: str | None = None):
        """
        Initialize the error.

        Args:
            message: Internal error message for logging/debugging
            user_message: Safe message to show to users (defaults to the class message)
        """
        super().__init__(message)
        self.user_message = user_message or self.default_user_message


# ============ Validation / uniqueness ============


class ValidationError(ProcurementError):
    """Input rejected before any write."""

    status_code = 422
    default_user_message = "The request could not be validated."


class DuplicateEmailError(ProcurementError):
    status_code = 409
    default_user_message = "Email address already registered."


class DuplicateUsernameError(ProcurementError):
    status_code = 409
    default_user_message = "Username already taken."


class DuplicateRecordError(ProcurementError):
    status_code = 409
    default_user_message = "This analysis is already in your library."


class DuplicateMemoError(ProcurementError):
    """Same owner, same trimmed title and body. Nothing was written."""

    status_code = 409
    default_user_message = "A memo with this exact title and content already exists."


class ColleagueError(ProcurementError):
    """Base for colleague graph rejections."""


class UnknownColleagueError(ColleagueError):
    status_code = 404
    default_user_message = "User not found."


class SelfColleagueError(ColleagueError):
    default_user_message = "You cannot add yourself as a colleague."


class DuplicateColleagueError(ColleagueError):
    status_code = 409
    default_user_message = "Already a colleague."


# ============ Permission ============


class PermissionDeniedError(ProcurementError):
    status_code = 403
    default_user_message = "Permission denied: you can only delete items you uploaded."


class InvalidCredentialError(ProcurementError):
    status_code = 401
    default_user_message = "Invalid username or password."


# ============ Expiry / state ============


class UnknownEmailError(ProcurementError):
    status_code = 404
    default_user_message = "No account found with this email address."


class InvalidOrExpiredCodeError(ProcurementError):
    default_user_message = "Invalid or expired OTP code."


# ============ Lookup ============


class UserNotFoundError(ProcurementError):
    status_code = 404
    default_user_message = "User not found."


class RecordNotFoundError(ProcurementError):
    status_code = 404
    default_user_message = "Analysis record not found."


class MemoNotFoundError(ProcurementError):
    status_code = 404
    default_user_message = "Memo not found."


# ============ Concurrency ============


class StaleWriteError(ProcurementError):
    """A collection changed between read and write. Safe to retry."""

    status_code = 409
    default_user_message = "The data changed while you were working. Please retry."


# ============ Analysis gateway ============


class AnalysisFailure(str, Enum):
    """Terminal failure categories of the analysis gateway."""

    CONTENT_BLOCKED = "content_blocked"
    RECITATION_BLOCKED = "recitation_blocked"
    OUTPUT_FORMAT = "output_format"
    EMPTY_RESPONSE = "empty_response"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    NETWORK = "network"
    BAD_CREDENTIAL = "bad_credential"
    BAD_REQUEST = "bad_request"
    UNKNOWN = "unknown"


FAILURE_MESSAGES: dict[AnalysisFailure, str] = {
    AnalysisFailure.CONTENT_BLOCKED: (
        "Analysis Blocked: The document contains content flagged by safety filters "
        "(e.g., sensitive info, hate speech, or harassment)."
    ),
    AnalysisFailure.RECITATION_BLOCKED: (
        "Analysis Stopped: The model output was flagged for recitation of copyrighted material."
    ),
    AnalysisFailure.OUTPUT_FORMAT: (
        "Data Parsing Error: The AI analysis completed, but the output format was invalid. "
        "This often happens with very long or complex documents. Please try uploading a "
        "smaller section or a simpler document."
    ),
    AnalysisFailure.EMPTY_RESPONSE: (
        "Empty Response: The AI returned no text. This usually means the document text "
        "could not be extracted or the file is empty."
    ),
    AnalysisFailure.RATE_LIMITED: (
        "Traffic Limit Exceeded: The system is currently busy. "
        "Please wait 30 seconds before retrying."
    ),
    AnalysisFailure.SERVICE_UNAVAILABLE: (
        "Service Unavailable: The AI service is temporarily down. Please try again later."
    ),
    AnalysisFailure.NETWORK: (
        "Network Error: Could not connect to the AI service. Please check your connection."
    ),
    AnalysisFailure.BAD_CREDENTIAL: (
        "Configuration Error: Invalid or missing API Key. Please contact your administrator."
    ),
    AnalysisFailure.BAD_REQUEST: (
        "Bad Request: The file might be corrupted, unsupported, or too large. "
        "Please ensure it is a valid PDF or image file."
    ),
    AnalysisFailure.UNKNOWN: "Unable to analyze the document. Please try again.",
}

FAILURE_STATUS: dict[AnalysisFailure, int] = {
    AnalysisFailure.RATE_LIMITED: 429,
    AnalysisFailure.BAD_CREDENTIAL: 503,
    AnalysisFailure.SERVICE_UNAVAILABLE: 503,
    AnalysisFailure.BAD_REQUEST: 400,
}


class AnalysisError(ProcurementError):
    """Terminal outcome of a failed analysis call."""

    status_code = 502

    def __init__(
        self,
        message: str,
        category: AnalysisFailure = AnalysisFailure.UNKNOWN,
        user_message: str | None = None,
    ):
        super().__init__(message, user_message or FAILURE_MESSAGES[category])
        self.category = category
        self.status_code = FAILURE_STATUS.get(category, 502)
