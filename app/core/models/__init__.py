from app.core.models.student import Student
from app.core.models.fee_ledger import FeeInstallment, StudentFeeLedger
from app.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "Student",
    "StudentFeeLedger",
    "FeeInstallment",
    "FeeAuditLog",
]
