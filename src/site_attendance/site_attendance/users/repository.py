from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .department_model import Department
from .model import User


class UserRepository(Protocol):
    """User/department directory.

    Note (DIP): services depend on this interface, not on a concrete store.
    """

    def get_by_id(self, user_id: str) -> Optional[User]:
        raise NotImplementedError

    def get_by_username(self, username: str) -> Optional[User]:
        raise NotImplementedError

    def list_by_department(self, department: str) -> Sequence[User]:
        raise NotImplementedError

    def list_departments(self) -> Sequence[Department]:
        raise NotImplementedError
