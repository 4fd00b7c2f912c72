"""Authentication routes"""
import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from pymongo.errors import DuplicateKeyError

from models.user import SignupRequest, LoginRequest, AuthResponse, UserRole
from utils.auth import verify_password, get_password_hash, create_access_token, get_current_user
from utils.database import get_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _token_for(user: dict) -> str:
    return create_access_token({
        "sub": user["email"],
        "user_id": user["id"],
        "role": user["role"],
    })


def _public_user(user: dict) -> dict:
    return {"id": user["id"], "email": user["email"], "role": user["role"]}


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(request: SignupRequest, db=Depends(get_database)):
    """Register a new user"""
    existing = await db.users.find_one({"email": request.email})
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")

    now = datetime.now(timezone.utc)
    user = {
        "id": str(uuid.uuid4()),
        "email": request.email,
        "role": UserRole.USER.value,
        "is_active": True,
        "hashed_password": get_password_hash(request.password),
        "created_at": now,
        "updated_at": now,
    }
    try:
        await db.users.insert_one(user)
    except DuplicateKeyError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")

    logger.info(f"User registered: {request.email}")
    return {"message": "User created successfully", "user": _public_user(user), "token": _token_for(user)}


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, db=Depends(get_database)):
    """Login with email and password"""
    user = await db.users.find_one({"email": request.email})

    if not user or not verify_password(request.password, user.get("hashed_password", "")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    if not user.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated. Please contact administrator."
        )

    return {"message": "Login successful", "user": _public_user(user), "token": _token_for(user)}


@router.get("/me")
async def get_current_user_info(current_user: dict = Depends(get_current_user)):
    """Get current user information"""
    return {"user": current_user}


@router.post("/logout")
async def logout(current_user: dict = Depends(get_current_user)):
    """Tokens are stateless; the client discards its copy"""
    return {"message": "Logout successful"}
