"""Domain Entities - Admin Auth"""
from pydantic import BaseModel


class AdminUser(BaseModel):
    """Operator allowed to see the reservation overview"""
    username: str
    disabled: bool = False

    class Config:
        from_attributes = True


class AdminUserInDB(AdminUser):
    """Admin with hashed password for credential checks"""
    hashed_password: str
