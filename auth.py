import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

import config
from database import AccountStore, get_db
from errors import AuthenticationError, NotFoundError, ValidationError
from schemas import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode({"sub": user_id, "exp": expire}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    # Never send password hash
    return {"id": user["id"], "email": user["email"], "name": user.get("name")}


def register(accounts: AccountStore, email: str, password: str, name: Optional[str]) -> Tuple[str, Dict[str, Any]]:
    user = User(email=email, password_hash=hash_password(password), name=name)
    user_id = accounts.create_user(user)
    logger.info("Registered user %s", user_id)
    return create_access_token(user_id), {"id": user_id, "email": user.email.lower(), "name": name}


def login(accounts: AccountStore, email: str, password: str) -> Tuple[str, Dict[str, Any]]:
    user = accounts.find_by_email(email)
    # Same error for unknown email and wrong password.
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise AuthenticationError()
    return create_access_token(user["id"]), public_user(user)


def get_current_user(authorization: Optional[str] = Header(default=None), db: Database = Depends(get_db)):
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Not authenticated")
    token = authorization.split(" ", 1)[1]
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token")
    try:
        return public_user(AccountStore(db).find_by_id(user_id))
    except (NotFoundError, ValidationError):
        raise AuthenticationError("User not found")
