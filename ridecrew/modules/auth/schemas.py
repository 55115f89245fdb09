from pydantic import BaseModel, EmailStr
from typing import Optional, Dict, Any


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordUpdateRequest(BaseModel):
    password: str


class AuthUser(BaseModel):
    id: str
    email: str
    user_metadata: Dict[str, Any] = {}


class SignInResponse(BaseModel):
    user: AuthUser
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
