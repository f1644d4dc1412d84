from collections.abc import Callable
from enum import StrEnum

from botocore.exceptions import ClientError, EndpointConnectionError
from pydantic import BaseModel

THROTTLING_ERROR_CODES = {
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "RequestThrottledException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
    "SlowDown",
}
STALE_TOKEN_ERROR_CODES = {"WAFStaleDataException"}
NOT_FOUND_ERROR_CODES = {
    "WAFNonexistentItemException",
    "ResourceNotFoundException",
    "ResourceNotFound",
    "NoSuchEntity",
    "NotFoundException",
}


class ErrorKind(StrEnum):
    THROTTLING = "throttling"
    STALE_TOKEN = "stale_token"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    UNSUPPORTED = "unsupported"
    OTHER = "other"


class Disposition(StrEnum):
    RETRYABLE = "retryable"
    NON_RETRYABLE = "non_retryable"
    SKIPPABLE = "skippable"


class ErrorClassification(BaseModel, frozen=True):
    disposition: Disposition
    reason: ErrorKind


ErrorClassifier = Callable[[Exception], ErrorClassification]


def error_code(err: BaseException | None) -> str:
    if isinstance(err, ClientError):
        return err.response.get("Error", {}).get("Code", "")
    return ""


def error_message(err: BaseException | None) -> str:
    if isinstance(err, ClientError):
        return err.response.get("Error", {}).get("Message", "")
    return ""


def err_code_equals(err: BaseException | None, *codes: str) -> bool:
    code = error_code(err)
    return bool(code) and code in codes


def err_code_contains(err: BaseException | None, fragment: str) -> bool:
    code = error_code(err)
    return bool(code) and fragment in code


def err_message_contains(err: BaseException | None, code: str, fragment: str) -> bool:
    return err_code_equals(err, code) and fragment in error_message(err)


def classify_error(err: BaseException | None) -> ErrorKind:
    code = error_code(err)
    if code in THROTTLING_ERROR_CODES or "Throttling" in code:
        return ErrorKind.THROTTLING
    if code in STALE_TOKEN_ERROR_CODES:
        return ErrorKind.STALE_TOKEN
    if code in NOT_FOUND_ERROR_CODES:
        return ErrorKind.NOT_FOUND
    if "AccessDenied" in code:
        return ErrorKind.ACCESS_DENIED
    if isinstance(err, EndpointConnectionError) or code in {
        "UnsupportedOperation",
        "InvalidAction",
    }:
        return ErrorKind.UNSUPPORTED
    return ErrorKind.OTHER


def is_throttling(err: BaseException | None) -> bool:
    return classify_error(err) == ErrorKind.THROTTLING


def is_stale_token(err: BaseException | None) -> bool:
    return classify_error(err) == ErrorKind.STALE_TOKEN


# (code, message fragment) pairs, an empty fragment matches any message
_SKIP_SWEEP_ERRORS = [
    ("UnsupportedOperation", ""),
    ("InvalidParameterValue", "not permitted in this API version for your account"),
    ("InvalidParameterValue", "Access Denied to API Version"),
    # GovCloud answers with an empty AccessDeniedException on many endpoints
    ("AccessDeniedException", ""),
    ("BadRequestException", "not supported"),
    ("InvalidAction", "is not valid"),
    ("InvalidAction", "Unavailable Operation"),
    ("InvalidKeySigningKeyStatus", "cannot be deleted because"),
    ("KeySigningKeyInParentDSRecord", "Due to DNS lookup failure"),
]


def skip_sweep_error(err: BaseException | None) -> bool:
    """Check a sweeper API call error for reasons to skip sweeping a whole
    service in a region: missing endpoints and unsupported API calls."""
    if isinstance(err, EndpointConnectionError):
        return True
    return any(
        err_message_contains(err, code, fragment)
        for code, fragment in _SKIP_SWEEP_ERRORS
    )


def sweep_skip_resource_error(err: BaseException | None) -> bool:
    """Check a sweeper API call error for reasons to skip a single resource,
    e.g. access denied on resources managed by someone else."""
    return err_code_contains(err, "AccessDenied")


def default_sweep_classifier(err: Exception) -> ErrorClassification:
    kind = classify_error(err)
    if kind == ErrorKind.THROTTLING:
        return ErrorClassification(disposition=Disposition.RETRYABLE, reason=kind)
    return ErrorClassification(disposition=Disposition.NON_RETRYABLE, reason=kind)


def skip_resource_classifier(err: Exception) -> ErrorClassification:
    if sweep_skip_resource_error(err):
        return ErrorClassification(
            disposition=Disposition.SKIPPABLE, reason=ErrorKind.ACCESS_DENIED
        )
    return default_sweep_classifier(err)
