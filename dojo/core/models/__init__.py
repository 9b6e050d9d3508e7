from dojo.core.models.branch import Branch
from dojo.core.models.student import Student
from dojo.core.models.fee_configuration import FeeConfiguration, FeeConfigurationHistory
from dojo.core.models.payment_preference import StudentPaymentPreference
from dojo.core.models.student_fee import StudentFee
from dojo.core.models.belt_grading import BeltGrading

__all__ = [
    "Branch",
    "Student",
    "FeeConfiguration",
    "FeeConfigurationHistory",
    "StudentPaymentPreference",
    "StudentFee",
    "BeltGrading",
]
