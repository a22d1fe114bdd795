from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class LedgerError(ServiceError):
    """Base for requirement ledger errors. Subclasses pick a default HTTP status."""

    default_status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: int = None) -> None:
        super().__init__(message, status_code or self.default_status_code)


class EligibilityError(LedgerError):
    """Pupil context lacks an attribute a specific-scope catalog item needs."""

    default_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str, requirement_id: str = None) -> None:
        super().__init__(message)
        self.requirement_id = requirement_id


class DuplicateAssignmentError(LedgerError):
    """A record for this requirement already exists in the frequency scope."""

    default_status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, requirement_id: str = None) -> None:
        super().__init__(message)
        self.requirement_id = requirement_id


class CoverageValidationError(LedgerError):
    """Rejected cash/item contribution. Raised before any record mutation."""


class ReleaseValidationError(LedgerError):
    """Rejected release request. Raised before any record mutation."""


class ConcurrencyConflictError(LedgerError):
    """Record was updated by someone else since the caller read it."""

    default_status_code = status.HTTP_409_CONFLICT

    def __init__(self, record_id: str, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"Record {record_id} was modified (expected version {expected_version}, found {actual_version})"
        )
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class StoreError(LedgerError):
    """Record store failure. Passed through unchanged; never retried."""

    default_status_code = status.HTTP_503_SERVICE_UNAVAILABLE
