from pydantic import BaseModel
from typing import Optional
from uuid import UUID
from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class AuthContext(BaseModel):
    user_id: UUID
    tenant_id: Optional[UUID] = None
    user_role: Optional[str] = None
    full_name: str = ""

    def has_role(self, roles: list[str]) -> bool:
        return self.user_role in roles
