from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from core.security import Principal, oauth2_scheme, require_role
from models.user import ROLE_ADMIN, ROLE_DRIVER


class RoleChecker:
    def __init__(self, role: str):
        self.role = role

    def __call__(
        self,
        token: Optional[str] = Depends(oauth2_scheme),
        db: Session = Depends(get_db)
    ) -> Principal:
        return require_role(token, self.role, db)


# Define reusable dependencies
require_admin = RoleChecker(ROLE_ADMIN)
require_driver = RoleChecker(ROLE_DRIVER)
