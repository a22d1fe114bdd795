from app.core.models.academic_year import AcademicYear, Term
from app.core.models.pupil import Pupil
from app.core.models.requirement_item import RequirementItem
from app.core.models.fulfillment_record import FulfillmentRecord

__all__ = [
    "AcademicYear",
    "Term",
    "Pupil",
    "RequirementItem",
    "FulfillmentRecord",
]
