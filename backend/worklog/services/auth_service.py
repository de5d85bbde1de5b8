"""Auth service: password hashing, session tokens, registration and login."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from worklog.config import settings
from worklog.errors import AuthError, ConflictError, ValidationError
from worklog.models.user import User
from worklog.services.validation import (
    is_strong_password,
    is_valid_email,
    sanitize_email,
    sanitize_name,
)

logger = logging.getLogger(__name__)

TOKEN_ISSUER = "worklog"
TOKEN_AUDIENCE = "worklog-client"
TOKEN_ALGORITHM = "HS256"
INVALID_CREDENTIALS = "Invalid credentials."
# bcrypt only reads the first 72 bytes and newer releases refuse longer input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def create_session_token(user: User, expires_in: Optional[timedelta] = None) -> str:
    """Sign a time-boxed token binding the user's id, email and name."""
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(minutes=settings.JWT_EXPIRES_MINUTES)
    claims = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "iat": now,
        "exp": now + lifetime,
        "iss": TOKEN_ISSUER,
        "aud": TOKEN_AUDIENCE,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=TOKEN_ALGORITHM)


def decode_session_token(token: str) -> dict[str, Any]:
    """Verify signature, expiry, issuer and audience; raise AuthError otherwise."""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[TOKEN_ALGORITHM],
            issuer=TOKEN_ISSUER,
            audience=TOKEN_AUDIENCE,
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as exc:
        logger.warning("Rejected session token: %s", exc)
        raise AuthError("Invalid session.") from exc


def register_user(db: Session, name: Any, email: Any, password: Any) -> User:
    """Validate registration input, reject duplicate emails, persist the user."""
    name = sanitize_name(name)
    email = sanitize_email(email)
    password = str(password or "")

    if not name or not email or not password:
        raise ValidationError("Name, email and password are required.")
    if not is_valid_email(email):
        raise ValidationError("Invalid email.")
    if not is_strong_password(password):
        raise ValidationError(
            "Weak password: at least 8 characters with an uppercase letter, a lowercase letter and a digit."
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password too long (max {MAX_PASSWORD_BYTES} bytes).")

    if db.query(User).filter(User.email == email).first():
        raise ConflictError("Email already registered.")

    user = User(name=name, email=email, password_hash=hash_password(password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Email already registered.") from exc
    db.refresh(user)
    logger.info("Registered user %s (%s)", user.id, user.email)
    return user


def authenticate(db: Session, email: Any, password: Any) -> User:
    """Return the user for a matching email/password pair.

    Unknown email and wrong password fail with the same message.
    """
    email = sanitize_email(email)
    password = str(password or "")
    if not email or not password:
        raise ValidationError("Email and password are required.")

    user = db.query(User).filter(User.email == email).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", email)
        raise AuthError(INVALID_CREDENTIALS)

    logger.info("User %s logged in", user.id)
    return user


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()
