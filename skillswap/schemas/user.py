"""Pydantic schemas for auth: register, login, user response, token."""
from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    """Request body for POST /auth/register. skills = what I offer, learning = what I want."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str | None = Field(default=None, max_length=255)
    skills: list[str] = Field(default_factory=list)
    learning: list[str] = Field(default_factory=list)


class UserResponse(BaseModel):
    """User in API responses (no password)."""
    id: int
    email: str
    name: str | None = None
    avatar_url: str | None = None
    skills: list[str] = []
    learning: list[str] = []

    class Config:
        from_attributes = True


class Token(BaseModel):
    """Response for login: access_token and type."""
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str
