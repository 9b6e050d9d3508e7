from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from dojo.core.enums import UserRole


class CurrentUser(BaseModel):
    """Authenticated actor as asserted by the profile service token.
    branch_id is set for branch admins and scopes them to their branch's students.
    """

    id: UUID
    role: UserRole
    branch_id: Optional[UUID] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN
