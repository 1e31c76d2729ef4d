"""
Error Taxonomy

Domain exceptions raised by the managers and rule functions. The HTTP layer
maps each family to a status code; everything derives from ValueError so
callers written against plain ValueError keep working.
"""


class FinanceError(ValueError):
    """Base class for all ledger errors"""
    status_code = 500


class ValidationError(FinanceError):
    """Missing or malformed input"""
    status_code = 400


class InvalidInstallmentCountError(ValidationError):
    """Installment count outside the allowed range"""


class InvalidFrequencyError(ValidationError):
    """Unknown installment or subscription frequency"""


class NotFoundError(FinanceError):
    """Entity does not exist or belongs to another user"""
    status_code = 404


class ConflictError(FinanceError):
    """Operation conflicts with current state (duplicate names, settled items)"""
    status_code = 409


class AlreadySettledError(ConflictError):
    """Debt is already PAID"""


class AlreadyPaidError(ConflictError):
    """Installment is already PAID"""


class UnauthorizedError(FinanceError):
    """Missing, invalid or expired credentials"""
    status_code = 401
