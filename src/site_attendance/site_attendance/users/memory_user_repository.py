from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..core.enums import Role
from .department_model import Department
from .model import User
from .repository import UserRepository

DEMO_USERS = (
    User("user001", "johndoe", "John Doe", Role.EMPLOYEE, "Construction", "Site Worker"),
    User("user002", "peterjones", "Peter Jones", Role.EMPLOYEE, "Construction", "Electrician"),
    User("user003", "samwilson", "Sam Wilson", Role.EMPLOYEE, "Logistics", "Driver"),
    User("mgr001", "janesmith", "Jane Smith", Role.MANAGER, "Construction", "Site Manager"),
    User("mgr002", "billturner", "Bill Turner", Role.MANAGER, "Logistics", "Logistics Head"),
    User("adm001", "alexjohnson", "Alex Johnson", Role.ADMIN, "HQ", "System Admin"),
)

DEMO_DEPARTMENTS = (
    Department("dept01", "Construction", "mgr001"),
    Department("dept02", "Logistics", "mgr002"),
    Department("dept03", "Surveying", None),
)


class InMemoryUserRepository(UserRepository):
    def __init__(self, users: Iterable[User] = DEMO_USERS, departments: Iterable[Department] = DEMO_DEPARTMENTS):
        self._users = {u.user_id: u for u in users}
        self._departments = list(departments)

    def get_by_id(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def get_by_username(self, username: str) -> Optional[User]:
        for u in self._users.values():
            if u.username == username:
                return u
        return None

    def list_by_department(self, department: str) -> Sequence[User]:
        return [u for u in self._users.values() if u.department == department]

    def list_departments(self) -> Sequence[Department]:
        return list(self._departments)
