# app/schemas.py

from __future__ import annotations
from pydantic import AfterValidator, BaseModel, Field, field_validator, ConfigDict
from typing import Annotated, Optional, List
from datetime import datetime
import re

from guard.checks import contains_xss

PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$")
PASSWORD_RULES = (
    "Password must contain at least one uppercase letter, one lowercase letter, "
    "one number, and one special character"
)
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
XSS_FIELD_MESSAGE = "The field contains potentially dangerous content."


def _reject_xss(value: Optional[str]) -> Optional[str]:
    if value is not None and contains_xss(value):
        raise ValueError(XSS_FIELD_MESSAGE)
    return value


NoXssStr = Annotated[str, AfterValidator(_reject_xss)]


def _check_password(value: str) -> str:
    if not PASSWORD_RE.match(value):
        raise ValueError(PASSWORD_RULES)
    return value


def _check_email(value: str) -> str:
    value = value.strip()
    if not EMAIL_RE.match(value):
        raise ValueError("Invalid email address")
    return value


# --- Auth Schemas ---
class UserRegister(BaseModel):
    username: NoXssStr = Field(..., min_length=3, max_length=100)
    email: NoXssStr = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=100)
    age: int = Field(..., ge=18, le=120)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: str) -> str:
        return _check_password(value)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=100)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)

    @field_validator("new_password")
    @classmethod
    def _validate_new_password(cls, value: str) -> str:
        return _check_password(value)


# --- User Schemas ---
class UserPublic(BaseModel):
    id: int
    username: str
    email: str
    age: int
    model_config = ConfigDict(from_attributes=True)


class UserProfile(UserPublic):
    created_at: datetime
    last_login_at: Optional[datetime] = None


class UserAdminView(UserProfile):
    is_active: bool
    roles: List[str] = []


class UserUpdate(BaseModel):
    username: NoXssStr = Field(..., min_length=3, max_length=100)
    email: NoXssStr = Field(..., max_length=255)
    age: int = Field(..., ge=18, le=120)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _check_email(value)


class PublicUserMatch(BaseModel):
    username: str
    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    user: UserPublic
    token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str


# --- Product Schemas ---
class ProductBase(BaseModel):
    name: NoXssStr = Field(..., min_length=1, max_length=200)
    price: float = Field(..., ge=0.01)
    description: NoXssStr = Field("", max_length=1000)
    stock_quantity: int = Field(0, ge=0)


class ProductCreate(ProductBase):
    pass


class ProductUpdate(ProductBase):
    pass


class ProductOut(ProductBase):
    id: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class StockUpdate(BaseModel):
    quantity: int


# --- File Schemas ---
class FileOut(BaseModel):
    id: int
    file_name: str
    original_file_name: str
    content_type: str
    file_size: int
    uploaded_by: str
    uploaded_at: datetime
    description: Optional[str] = None
    category: Optional[str] = None
    is_public: bool
    model_config = ConfigDict(from_attributes=True)


class FileUploadResponse(FileOut):
    download_url: str


class FileListItem(FileOut):
    can_download: bool


class FileListResponse(BaseModel):
    files: List[FileListItem]
    total_count: int
    page: int
    page_size: int


class FileMetadata(BaseModel):
    description: Optional[NoXssStr] = Field(None, max_length=500)
    category: Optional[NoXssStr] = Field(None, max_length=50)
    is_public: bool = False
