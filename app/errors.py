class LedgerError(Exception):
    """Base for every error the loyalty ledger reports to its callers."""

    code = "ledger_error"
    default_message = "Loyalty ledger error"

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, **self.context}


class EmployeeNotFound(LedgerError):
    code = "employee_not_found"
    default_message = "Employee not found. Check your ID."


class NotRegistered(LedgerError):
    code = "not_registered"
    default_message = "No loyalty profile. Use Register."


class ProfileNotFound(LedgerError):
    code = "profile_not_found"
    default_message = "Loyalty profile not found"


class StoreUnavailable(LedgerError):
    """Durable store could not be read or written. Retry, never treat as empty."""

    code = "store_unavailable"
    default_message = "Loyalty store temporarily unavailable"


class EmployeeMissing(LedgerError):
    """Profile exists but its employee is gone from the directory."""

    code = "employee_missing"
    default_message = "Employee data missing."
