# app/models.py

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, Numeric, Text, JSON
from sqlalchemy.orm import declarative_base
Base = declarative_base()

ROLE_ADMIN = "Admin"
ROLE_USER = "User"


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    age = Column(Integer, nullable=False, default=18)
    roles = Column(JSON, nullable=False, default=lambda: [ROLE_USER])
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, index=True)
    price = Column(Numeric(18, 2, asdecimal=False), nullable=False)
    description = Column(String(1000), nullable=False, default="")
    stock_quantity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, nullable=True)


class FileUpload(Base):
    __tablename__ = "file_uploads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_name = Column(String(255), nullable=False, unique=True)
    original_file_name = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    uploaded_by = Column(String(100), nullable=False, index=True)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True, index=True)
    is_public = Column(Boolean, default=False, nullable=False)
    checksum = Column(String(64), nullable=True)
