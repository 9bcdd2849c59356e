from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: an entry of the user directory."""

    user_id: str
    username: str
    full_name: str
    role: Role
    department: str
    position: str
    profile_picture_url: Optional[str] = None
    is_active: bool = True

    @property
    def avatar_initial(self) -> str:
        return self.full_name[:1].upper()
