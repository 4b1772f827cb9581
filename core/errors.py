class ServiceError(Exception):
    kind = "service_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(ServiceError):
    kind = "not_found"


class AlreadyProcessedError(ServiceError):
    kind = "already_processed"


class InsufficientFundsError(ServiceError):
    kind = "insufficient_funds"


class InvalidAmountError(ServiceError):
    kind = "invalid_amount"


class InvalidReferenceError(ServiceError):
    kind = "invalid_reference"


class DependencyFailureError(ServiceError):
    kind = "dependency_failure"


class ForbiddenError(ServiceError):
    kind = "forbidden"


class DuplicateError(ServiceError):
    kind = "duplicate"


class LedgerIntegrityError(ServiceError):
    """Cached balance disagrees with the sum of its ledger entries."""
    kind = "ledger_integrity"


class UnauthorizedError(ServiceError):
    kind = "unauthorized"
