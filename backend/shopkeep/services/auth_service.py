# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Passwords are hashed with bcrypt (cost factor 12) and must pass a strength
check before hashing. Bearer tokens are issued by token_service.
"""

import bcrypt
import re
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Role, User
from ..validation import ConflictError, NotFoundError, ValidationError
from shopkeep.time_utils import utcnow


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    role: Role | str = Role.USER,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: bad username/email/role, or weak password
        ConflictError: username or email already taken
    """
    if not all(isinstance(v, str) for v in (username, email, password)):
        raise ValidationError("username, email and password must be strings")

    username = username.strip()
    email = email.strip().lower()

    if not username:
        raise ValidationError("username is required")
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("A valid email is required")

    try:
        role = Role.parse(role)
    except ValueError as e:
        raise ValidationError(str(e))

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    password_hash = hash_password(password)

    user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        role=role,
    )

    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username or email already exists")

    current_app.logger.info("Created user %s with role %s", user.username, role.value)
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user by username or email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    if not isinstance(username, str) or not isinstance(password, str):
        return None
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def set_role(user_id: int, role: Role | str) -> User:
    """Change a user's role (admin action)."""
    try:
        role = Role.parse(role)
    except ValueError as e:
        raise ValidationError(str(e))

    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    user.role = role
    db.session.commit()
    current_app.logger.info("Changed role of %s to %s", user.username, role.value)
    return user
