"""Operation status enumeration.

Status codes used to classify provider call outcomes so the retry layer can
decide whether another attempt is worthwhile.
"""

from enum import Enum


class OperationStatus(Enum):
    """Status codes for operation results.

    Attributes:
        SUCCESS: Provider accepted the message
        TRANSIENT_ERROR: Retryable error (network, timeout, 5xx, throttling)
        PERMANENT_ERROR: Non-retryable error (bad request, rejected recipient)
        UNAUTHORIZED: Credentials rejected by the provider
        NOT_FOUND: Addressed resource does not exist (e.g. unregistered token)
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
