from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from ..services.lifecycle import UserRole


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    role: UserRole

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class UserPublic(BaseModel):
    id: str = Field(alias="_id")
    email: EmailStr
    role: UserRole
    profile_completed: bool = False
    created_at: datetime


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    user: UserPublic
    redirect: str
    message: str = "Authenticated"


class TokenPayload(BaseModel):
    sub: str
    role: UserRole
    exp: int
