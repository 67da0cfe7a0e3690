from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from blog_api.core.database import get_db
from blog_api.core.errors import envelope
from blog_api.core.security import TokenPayload, create_access_token
from blog_api.models.user import User
from blog_api.services.auth_service import auth_service
from blog_api.api.dependencies import authenticate, get_current_user, require_admin

router = APIRouter(prefix="/auth", tags=["auth"])


class UserCreate(BaseModel):
    username: str
    password: str
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None

    @field_validator("email", "display_name", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        # The setup form posts empty strings for fields left blank
        if isinstance(value, str) and not value.strip():
            return None
        return value


class UserProvision(UserCreate):
    role: str = "user"


class LoginRequest(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    id: int
    username: str
    email: Optional[str]
    display_name: Optional[str]
    avatar_url: Optional[str]
    role: str
    is_active: bool
    last_login_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


def user_data(user: User) -> dict:
    """Public view of a user row (never includes the password hash)"""
    return UserResponse.model_validate(user).model_dump(mode="json")


def session_data(user: User) -> dict:
    token, expires_at = create_access_token(user)
    return {"user": user_data(user), "token": token, "expires_at": expires_at.isoformat()}


@router.get("/check-users")
async def check_users(db: Session = Depends(get_db)):
    """Tell the client whether to show first-run setup or the login screen"""
    return envelope(auth_service.user_status(db))


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(registration: UserCreate, db: Session = Depends(get_db)):
    """Register a new user; the first user without an existing admin becomes admin"""
    user = auth_service.create_user(
        db,
        username=registration.username,
        password=registration.password,
        email=registration.email,
        display_name=registration.display_name,
    )
    message = "Administrator account created" if user.role == "admin" else "Registration successful"
    return envelope(session_data(user), message)


@router.post("/login")
async def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """Login and get a session token"""
    # Same 401 for unknown user, disabled user and wrong password
    user = auth_service.authenticate_user(db, credentials.username, credentials.password)
    return envelope(session_data(user), "Login successful")


@router.get("/me")
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return envelope(user_data(current_user))


@router.get("/verify")
async def verify(payload: TokenPayload = Depends(authenticate)):
    """200 if the bearer token is valid; the dependency rejects it otherwise"""
    return envelope(message="Token is valid")


@router.post("/logout")
async def logout(payload: TokenPayload = Depends(authenticate)):
    """
    Advisory logout.

    Tokens are stateless and stay valid until they expire; the client is
    expected to discard its copy.
    """
    return envelope(message="Logged out")


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def provision_user(
    new_user: UserProvision,
    admin: TokenPayload = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create a user with an explicit role (admin only)"""
    user = auth_service.create_user(
        db,
        username=new_user.username,
        password=new_user.password,
        email=new_user.email,
        display_name=new_user.display_name,
        role=new_user.role,
    )
    return envelope(user_data(user), f"User created by {admin.username}")
