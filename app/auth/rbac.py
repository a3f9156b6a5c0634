from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser

# Institute owners and office admins may do everything; other staff need explicit grants
ADMIN_ROLES = ("SUPER_ADMIN", "ADMIN")


def has_permission(user: CurrentUser, module: str, action: str) -> bool:
    if user.role in ADMIN_ROLES:
        return True
    return bool(user.permissions.get(module, {}).get(action, False))


def check_permission(module: str, action: str):
    """
    Dependency factory: 403 unless the caller may perform ``action`` on ``module``.

    Modules are "students" and "fees"; actions are "create", "read", "update".
    Example:
        Depends(check_permission("fees", "update"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_permission(current_user, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission {module}:{action}",
            )
        return current_user

    return _checker
