from app.core.models.student import Student
from app.core.models.fee_setup import BusFeeSetup, FeeSetup
from app.core.models.student_fee_demand import StudentFeeDemand
from app.core.models.fee_collection import FeeCollection
from app.core.models.transfer_certificate import TransferCertificate
from app.core.models.arrear_fee import ArrearFee
from app.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "Student",
    "FeeSetup",
    "BusFeeSetup",
    "StudentFeeDemand",
    "FeeCollection",
    "TransferCertificate",
    "ArrearFee",
    "FeeAuditLog",
]
