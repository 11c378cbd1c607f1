from typing import Optional
from pydantic import BaseModel


class SystemUserIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    isActive: Optional[bool] = None
    password: Optional[str] = None
    confirmPassword: Optional[str] = None
