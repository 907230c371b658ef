"""Operation result types and status enums.

Standardized result types for provider operations, including status enums,
the result dataclass and error classifiers for provider SDK exceptions.
"""

from courier.operations.classifiers import (
    classify_google_auth_error,
    classify_http_error,
    classify_redis_error,
    classify_smtp_error,
    classify_twilio_error,
)
from courier.operations.result import OperationResult
from courier.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "classify_http_error",
    "classify_smtp_error",
    "classify_twilio_error",
    "classify_redis_error",
    "classify_google_auth_error",
]
