from __future__ import annotations

from dataclasses import dataclass

from ..common.validators import require_non_empty
from ..core.constants import DEMO_PASSWORD
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError
from .department_model import Department
from .model import User
from .repository import UserRepository


@dataclass(frozen=True)
class SessionUser:
    """What we store into Flask session after login."""

    user_id: str
    full_name: str
    role: Role
    department: str


class AuthService:
    """Use case: mock login against the user directory.

    Every active directory user signs in with the shared demo password.
    """

    def __init__(self, users: UserRepository, *, demo_password: str = DEMO_PASSWORD):
        self._users = users
        self._demo_password = demo_password

    def authenticate(self, username: str, password: str) -> SessionUser:
        username = require_non_empty(username, "username")
        user = self._users.get_by_username(username)
        if not user or not user.is_active or password != self._demo_password:
            raise AuthenticationError("Invalid username or password")

        return SessionUser(
            user_id=user.user_id,
            full_name=user.full_name,
            role=user.role,
            department=user.department,
        )


class UserService:
    def __init__(self, users: UserRepository):
        self._users = users

    def get(self, user_id: str) -> User:
        user = self._users.get_by_id(user_id)
        if not user:
            raise AuthorizationError("Unknown user")
        return user

    def can_view_user(self, viewer: SessionUser, user_id: str) -> bool:
        """Employees see themselves, managers their department, admins everyone."""
        if viewer.user_id == user_id or viewer.role == Role.ADMIN:
            return True
        if viewer.role == Role.MANAGER:
            target = self._users.get_by_id(user_id)
            return target is not None and target.department == viewer.department
        return False

    def department_user_ids(self, department: str) -> set[str]:
        return {u.user_id for u in self._users.list_by_department(department)}

    def visible_departments(self, viewer: SessionUser) -> list[Department]:
        departments = self._users.list_departments()
        if viewer.role == Role.ADMIN:
            return list(departments)
        return [d for d in departments if d.name == viewer.department]
