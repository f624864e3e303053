from enum import Enum


class SubmitOutcome(Enum):
    """Result of a single submission to a notification backend."""

    DELIVERED = "delivered"
    # Stop sending to this backend for the rest of the run
    RATE_LIMITED = "rate_limited"
    # Host/key/URL mismatch; repeating the request won't help
    MALFORMED_REQUEST = "malformed_request"
    OTHER_ERROR = "other_error"
