# ctf_teams/crud/user.py
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ctf_teams.models.user import User
from ctf_teams.core.exceptions import UserNotFoundError, ValidationError
from ctf_teams.crud.transaction import atomic

logger = logging.getLogger("CTFTeams.Users")

def get_user(db: Session, user_id: int) -> User:
    """
    Получить пользователя по ID или UserNotFoundError.
    """
    user = db.get(User, user_id)
    if not user:
        raise UserNotFoundError(f"User with id={user_id} not found.", user_id=user_id)
    return user

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()

def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()

def create_user(db: Session, data: dict) -> User:
    """
    Создать пользователя (учётки ведёт внешний auth-слой; здесь — зеркало для правил членства).
    """
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip().lower()
    if not username or not email:
        raise ValidationError("Username and email are required.")
    if get_user_by_username(db, username) or get_user_by_email(db, email):
        raise ValidationError(f"User '{username}' <{email}> already exists.")
    user = User(
        username=username,
        email=email,
        full_name=data.get("full_name"),
        is_active=data.get("is_active", True),
        is_superuser=data.get("is_superuser", False),
    )
    with atomic(db, "creating user"):
        db.add(user)
    db.refresh(user)
    logger.info(f"Created user '{user.username}' (ID: {user.id})")
    return user
