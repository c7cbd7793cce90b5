from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from database.connection import get_db
from database.models import Organization, User, AuditLog, UserRole
from pydantic import BaseModel, Field, EmailStr
from datetime import datetime, timedelta, timezone
import os
import re
import logging
from dotenv import load_dotenv
import jwt
import bcrypt

load_dotenv()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["Authentication"])
security = HTTPBearer()

# ==================== CONFIG ====================

SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))  # 1 day
REFRESH_TOKEN_EXPIRE_DAYS = 7

# ==================== PYDANTIC MODELS ====================

class RegisterRequest(BaseModel):
    """New hospital/clinic with its owner account"""
    organization_name: str = Field(..., min_length=2, max_length=200)
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    org_mode: bool = True

    class Config:
        str_strip_whitespace = True

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class RefreshTokenRequest(BaseModel):
    refresh_token: str

class AuthResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: dict

# ==================== HELPER FUNCTIONS ====================

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()

def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
    except ValueError:
        # malformed hash
        return False

def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "org"

def create_access_token(data: dict) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({
        "exp": now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        "iat": now,
        "type": "access"
    })
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def create_refresh_token(data: dict) -> str:
    """Create JWT refresh token"""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({
        "exp": now + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
        "iat": now,
        "type": "refresh"
    })
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def decode_token(token: str) -> dict:
    """Decode and validate JWT token"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired"
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

def issue_tokens(user: User) -> dict:
    claims = {"user_id": user.id, "organization_id": user.organization_id, "role": user.role}
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
        "token_type": "bearer",
        "user": serialize_user(user),
    }

def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "image": user.image,
        "organization_id": user.organization_id,
    }

# ==================== DEPENDENCY: Get Current User ====================

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get current authenticated user
    Use this in protected routes: current_user: User = Depends(get_current_user)
    """
    payload = decode_token(credentials.credentials)

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return user


async def get_active_organization(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Organization:
    """Tenant of the logged-in user; every query is scoped to it"""
    organization = db.query(Organization).filter(
        Organization.id == current_user.organization_id
    ).first()
    if not organization:
        raise HTTPException(status_code=403, detail="No active organization")
    return organization

# ==================== API ENDPOINTS ====================

@router.post("/register", response_model=AuthResponse)
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    🏥 Register a hospital/clinic

    Creates:
    - Organization (tenant)
    - Owner user account (bcrypt password)
    """
    if db.query(User).filter(User.email == request.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    slug = slugify(request.organization_name)
    if db.query(Organization).filter(Organization.slug == slug).first():
        slug = f"{slug}-{datetime.now().strftime('%Y%m%d%H%M%S')}"

    organization = Organization(
        name=request.organization_name,
        slug=slug,
        metadata_={"org_mode": request.org_mode}
    )
    db.add(organization)
    db.flush()

    user = User(
        organization_id=organization.id,
        email=request.email,
        name=request.name,
        password_hash=hash_password(request.password),
        role=UserRole.OWNER.value,
    )
    db.add(user)
    db.flush()

    db.add(AuditLog(
        organization_id=organization.id,
        user_id=user.id,
        action="ORGANIZATION_REGISTERED",
        entity_type="organization",
        entity_id=organization.id,
        details={"slug": slug}
    ))
    db.commit()
    db.refresh(user)

    logger.info("Registered organization %s (%s)", organization.name, organization.id)
    return issue_tokens(user)


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db)
):
    """🔐 Email + password login"""
    user = db.query(User).filter(User.email == request.email).first()
    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")

    user.last_login = datetime.now()
    db.add(AuditLog(
        organization_id=user.organization_id,
        user_id=user.id,
        action="LOGIN",
        entity_type="auth",
        entity_id=user.id,
        details={"email": user.email}
    ))
    db.commit()

    return issue_tokens(user)


@router.post("/refresh", response_model=dict)
async def refresh_access_token(
    request: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """
    🔄 Refresh Access Token

    - Validates refresh token
    - Returns new access token
    """
    payload = decode_token(request.refresh_token)

    if payload.get("type") != "refresh":
        raise HTTPException(
            status_code=400,
            detail="Invalid token type. Must be refresh token."
        )

    user = db.query(User).filter(User.id == payload.get("user_id")).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return {
        "access_token": create_access_token({
            "user_id": user.id,
            "organization_id": user.organization_id,
            "role": user.role
        }),
        "token_type": "bearer"
    }


@router.get("/me", response_model=dict)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """👤 Get Current User Info"""
    info = serialize_user(current_user)
    info["created_at"] = current_user.created_at.strftime("%Y-%m-%d")
    return info
