from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.sql import func
from blog_api.core.database import Base


class User(Base):
    """
    User model representing blog authors and administrators.

    Passwords are stored as bcrypt hashes (never plaintext).
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # Username is the login identifier - unique and indexed
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    # "admin" or "user"
    role = Column(String(20), nullable=False, default="user")
    # is_active allows disabling users without removing data
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
