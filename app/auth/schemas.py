from typing import Dict
from uuid import UUID

from pydantic import BaseModel, Field


class CurrentUser(BaseModel):
    """Authenticated staff member, built from access token claims.
    id is recorded as the actor on every fee audit entry.
    """

    id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]] = Field(default_factory=dict)
