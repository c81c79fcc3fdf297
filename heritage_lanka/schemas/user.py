from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import List, Optional

from heritage_lanka.models.user import UserRole


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: str = Field(min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    role: UserRole = UserRole.TRAVELER
    languages: List[str] = Field(default_factory=lambda: ["English"])
    country: str = Field("Sri Lanka", max_length=100)
    nic: Optional[str] = Field(None, min_length=5, max_length=20)

    @model_validator(mode="after")
    def check_role(self):
        if self.role == UserRole.ADMIN:
            raise ValueError("Admin accounts cannot self-register")
        if self.role == UserRole.GUIDE and not self.nic:
            raise ValueError("Guides must provide a NIC number")
        return self


class UserRead(BaseModel):
    id: int
    email: EmailStr
    name: str
    phone: Optional[str] = None
    role: UserRole
    languages: List[str] = []
    country: str

    class Config:
        from_attributes = True


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    refresh_token: str
