from typing import Dict
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated staff member for RBAC checks.
    name is stamped on history entries as received_by / released_by.
    """

    id: UUID
    name: str
    role: str
    permissions: Dict[str, Dict[str, bool]]
