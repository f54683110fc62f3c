"""
Scheduling Engine Exceptions

Custom exception classes shared by the engine, the storage adapters and
the orchestration services.

Taxonomy:
    - ContractViolationError: the caller passed something the engine cannot
      schedule (rating outside 1-4, negative stability, inconsistent record).
      Fatal to the call, never silently coerced.
    - NotFoundError: a resource that must exist is missing. Note that a
      missing scheduling record is NOT an error; callers create the initial
      record instead.
    - ConcurrentUpdateError: a save targeted a stale record version. Raised
      by stores; callers retry the transition from the fresh record.

Usage:
    from vocab_srs.exceptions import ContractViolationError

    raise ContractViolationError(
        "Rating must be between 1 and 4", details={"rating": 7}
    )
"""

from typing import Optional


class SchedulerError(Exception):
    """
    Base exception for scheduling engine errors.

    Provides consistent error handling with:
    - Error code for categorization
    - Optional details for debugging

    Example:
        raise SchedulerError("Store unavailable", error_code="store_error")
    """

    error_code: str = "scheduler_error"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Serialize the error for logs or API layers."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ContractViolationError(SchedulerError):
    """
    Invalid input to the engine.

    Raised for ratings outside 1-4, negative or out-of-domain numeric
    inputs, malformed records, and negative session limits.
    """

    error_code = "contract_violation"


class NotFoundError(SchedulerError):
    """
    Resource not found error.

    Raised when a collection or aggregate that must exist is missing.
    """

    error_code = "not_found"


class ConcurrentUpdateError(SchedulerError):
    """
    Optimistic-lock failure.

    Raised by a store when a record or progress aggregate write targets a
    version other than the one currently persisted. The caller should
    reload and re-apply the change.
    """

    error_code = "concurrent_update"
