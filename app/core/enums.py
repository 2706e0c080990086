from enum import Enum


class FeeComponentCategory(str, Enum):
    ACADEMIC = "ACADEMIC"
    TRANSPORT = "TRANSPORT"
    HOSTEL = "HOSTEL"
    OTHER = "OTHER"


class FeeSource(str, Enum):
    """Fee line sources reported in FeeStructure.not_configured."""

    TUITION = "tuition"
    HOSTEL = "hostel"
    TRANSPORT = "transport"


class IssuanceState(str, Enum):
    NO_SELECTION = "NO_SELECTION"
    EDITABLE = "EDITABLE"
    ISSUED = "ISSUED"


class ArrearDirection(str, Enum):
    IN = "IN"
    OUT = "OUT"
