import logging
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from blog_api.core.errors import MalformedInput, StorageFailure, Unauthenticated
from blog_api.core.security import get_password_hash, verify_password
from blog_api.models.user import User

logger = logging.getLogger(__name__)

ROLES = ("admin", "user")

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6

# One message for every login failure so callers can't probe for usernames
INVALID_CREDENTIALS = "Invalid username or password"


class AuthService:
    @staticmethod
    def resolve_role(db: Session) -> str:
        """
        Role for a self-registered user.

        The first registration against a database without an admin becomes
        the admin; everyone after that is a regular user. Two registrations
        racing before either commits can both see "no admin" - this is
        accepted, see DESIGN.md.
        """
        admin_count = db.query(func.count(User.id)).filter(User.role == "admin").scalar()
        return "user" if admin_count else "admin"

    @staticmethod
    def user_status(db: Session) -> dict:
        """Counts used by the client to decide between first-run setup and login"""
        user_count = db.query(func.count(User.id)).scalar() or 0
        admin_count = db.query(func.count(User.id)).filter(User.role == "admin").scalar() or 0
        return {
            "hasUsers": user_count > 0,
            "userCount": user_count,
            "hasAdmin": admin_count > 0,
            "adminCount": admin_count,
        }

    @staticmethod
    def validate_credentials(username: Optional[str], password: Optional[str]) -> str:
        """Check registration input and return the trimmed username"""
        username = (username or "").strip()
        if not username or not password:
            raise MalformedInput("Username and password are required")
        if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
            raise MalformedInput(
                f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters"
            )
        if len(password) < PASSWORD_MIN_LENGTH:
            raise MalformedInput(
                f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
        return username

    @staticmethod
    def create_user(
        db: Session,
        username: str,
        password: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        role: Optional[str] = None,
    ) -> User:
        """
        Create a user and commit.

        ``role=None`` applies the first-admin policy; an explicit role is only
        passed by the admin provisioning endpoint.
        """
        username = AuthService.validate_credentials(username, password)
        if role is not None and role not in ROLES:
            raise MalformedInput(f"Role must be one of: {', '.join(ROLES)}")

        # Explicit checks give clearer messages than constraint violations
        if db.query(User.id).filter(User.username == username).first():
            raise MalformedInput("Username already exists")
        if email and db.query(User.id).filter(User.email == email).first():
            raise MalformedInput("Email already exists")

        try:
            db_user = User(
                username=username,
                email=email or None,
                password_hash=get_password_hash(password),
                display_name=display_name or None,
                role=role or AuthService.resolve_role(db),
                is_active=True,
                last_login_at=datetime.now(timezone.utc),
            )
            db.add(db_user)
            db.commit()
            db.refresh(db_user)
        except IntegrityError:
            # Two requests registering the same name at once: the explicit
            # check above passes for both, the unique constraint catches one
            db.rollback()
            raise MalformedInput("Username or email already exists")
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to create user {username}")
            raise StorageFailure()

        logger.info(f"Created user {db_user.username} (id={db_user.id}, role={db_user.role})")
        return db_user

    @staticmethod
    def authenticate_user(db: Session, username: Optional[str], password: Optional[str]) -> User:
        """Return the active user matching the credentials or raise a generic 401"""
        if not username or not password:
            raise MalformedInput("Username and password are required")

        user = db.query(User).filter(
            User.username == username.strip(),
            User.is_active.is_(True),
        ).first()
        if user is None:
            raise Unauthenticated(INVALID_CREDENTIALS)

        try:
            password_ok = verify_password(password, user.password_hash)
        except ValueError:
            # Stored hash is unreadable - a data problem, not the caller's
            logger.error(f"Unreadable password hash for user id={user.id}")
            password_ok = False
        if not password_ok:
            raise Unauthenticated(INVALID_CREDENTIALS)

        AuthService.touch_last_login(db, user)
        return user

    @staticmethod
    def touch_last_login(db: Session, user: User) -> None:
        try:
            user.last_login_at = datetime.now(timezone.utc)
            db.commit()
            db.refresh(user)
        except SQLAlchemyError:
            # Login still succeeds if the timestamp can't be written
            db.rollback()
            logger.exception(f"Could not update last_login_at for user id={user.id}")

    @staticmethod
    def get_active_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()


auth_service = AuthService()
