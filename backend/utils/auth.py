"""Authentication utilities"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from utils.config import JWT_SECRET_KEY, ACCESS_TOKEN_EXPIRE_MINUTES
from utils.database import get_database

SECRET_KEY = JWT_SECRET_KEY
ALGORITHM = "HS256"

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Security scheme
security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password"""
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode a JWT token; raises JWTError (ExpiredSignatureError when expired)"""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db=Depends(get_database),
):
    """Get current user from token (required); the user must still exist and be active"""
    if credentials is None:
        raise _unauthorized("Access denied. No token provided.")

    try:
        payload = decode_token(credentials.credentials)
    except ExpiredSignatureError:
        raise _unauthorized("Token expired.")
    except JWTError:
        raise _unauthorized("Invalid token.")

    user = await db.users.find_one({"id": payload.get("user_id")}, {"_id": 0, "hashed_password": 0})
    if not user or not user.get("is_active", True):
        raise _unauthorized("Invalid token. User not found or inactive.")

    return {
        "user_id": user["id"],
        "email": user["email"],
        "role": user.get("role"),
    }
