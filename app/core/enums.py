from enum import Enum


class RequirementGender(str, Enum):
    ALL = "all"
    MALE = "male"
    FEMALE = "female"


class ScopeType(str, Enum):
    ALL = "all"
    SPECIFIC = "specific"


class PupilSection(str, Enum):
    DAY = "Day"
    BOARDING = "Boarding"


class RequirementFrequency(str, Enum):
    ONE_TIME = "one-time"
    YEARLY = "yearly"
    TERMLY = "termly"


class SelectionMode(str, Enum):
    ITEM = "item"
    BUNDLE = "bundle"


class PaymentStatus(str, Enum):
    pending = "pending"
    partial = "partial"
    paid = "paid"


class ReleaseStatus(str, Enum):
    pending = "pending"
    released = "released"


class CoverageMode(str, Enum):
    cash = "cash"
    item = "item"


class ReceiptType(str, Enum):
    payment_only = "payment_only"
    receipt_only = "receipt_only"
    payment_and_receipt = "payment_and_receipt"


class ReceiptSource(str, Enum):
    office = "office"
    parent = "parent"


class HistoryKind(str, Enum):
    coverage = "coverage"
    receipt = "receipt"
    release = "release"
    release_complete = "release_complete"
