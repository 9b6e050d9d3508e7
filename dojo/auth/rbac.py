from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.auth.dependencies import get_current_user
from dojo.auth.schemas import CurrentUser
from dojo.core.enums import UserRole
from dojo.core.exceptions import AuthorizationError, NotFoundError
from dojo.core.models import Student


def require_role(*roles: UserRole):
    """
    Dependency factory to enforce one of the given roles.

    Example:
        Depends(require_role(UserRole.SUPER_ADMIN))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


require_admin = require_role(UserRole.SUPER_ADMIN, UserRole.ADMIN)
require_super_admin = require_role(UserRole.SUPER_ADMIN)


async def ensure_student_in_scope(db: AsyncSession, current_user: CurrentUser, student_id: UUID) -> Student:
    """Branch admins may only act on students of their own branch, students only on themselves."""
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    if current_user.is_super_admin:
        return student
    if current_user.role == UserRole.STUDENT:
        if student.id != current_user.id:
            raise AuthorizationError()
        return student
    if current_user.branch_id is not None and student.branch_id != current_user.branch_id:
        raise AuthorizationError("Student belongs to another branch")
    return student
