"""
Messagely Backend — Authentication Schemas
============================================

What:  Request/response bodies for /auth/login and /auth/register, and the
       Identity carried by authenticated requests.
"""

from pydantic import BaseModel, Field


class Identity(BaseModel):
    """The username decoded from a verified token."""
    username: str

    model_config = {"frozen": True}


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: str = Field(min_length=1, max_length=50)


class LoginResponse(BaseModel):
    message: str = Field(default="Logged In!")
    token: str


class TokenResponse(BaseModel):
    token: str
