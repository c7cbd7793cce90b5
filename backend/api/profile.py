from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from database.connection import get_db
from database.models import User, Organization, UserRole
from api.auth import get_current_user, get_active_organization, serialize_user
from api.common import write_audit
from pydantic import BaseModel, Field, EmailStr
from typing import Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/profile", tags=["Profile"])
clinic_router = APIRouter(prefix="/api/clinic", tags=["Clinic"])

# ==================== PYDANTIC MODELS ====================

class UpdateProfileRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    image: Optional[str] = Field(None, max_length=500, description="Profile image url")

class UpdateClinicRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    logo: Optional[str] = Field(None, max_length=500)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    org_mode: Optional[bool] = Field(None, description="Hospital first on documents when true")

# ==================== HELPER FUNCTIONS ====================

def serialize_clinic(organization: Organization) -> dict:
    metadata = organization.metadata_ or {}
    return {
        "id": organization.id,
        "name": organization.name,
        "slug": organization.slug,
        "logo": organization.logo,
        "address": metadata.get("address"),
        "phone": metadata.get("phone"),
        "email": metadata.get("email"),
        "org_mode": bool(metadata.get("org_mode", True)),
    }

# ==================== PROFILE ====================

@router.get("", response_model=dict)
async def get_profile(
    current_user: User = Depends(get_current_user)
):
    """👤 Logged-in user's profile"""
    return {"status": "success", "profile": serialize_user(current_user)}


@router.put("", response_model=dict)
async def update_profile(
    request: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """✏️ Update name / profile image"""
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    for key, value in changes.items():
        setattr(current_user, key, value)

    write_audit(db, organization, current_user, "PROFILE_UPDATED", "user", current_user.id,
                {"fields": sorted(changes.keys())})
    db.commit()
    db.refresh(current_user)

    return {
        "status": "success",
        "message": "Profile updated successfully",
        "profile": serialize_user(current_user)
    }

# ==================== CLINIC ====================

@clinic_router.get("", response_model=dict)
async def get_clinic(
    organization: Organization = Depends(get_active_organization)
):
    """🏥 Organization identity used on receipts"""
    return {"status": "success", "clinic": serialize_clinic(organization)}


@clinic_router.put("", response_model=dict)
async def update_clinic(
    request: UpdateClinicRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    if current_user.role not in (UserRole.OWNER.value, UserRole.ADMIN.value):
        raise HTTPException(status_code=403, detail="Only owners and admins can edit clinic details")

    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes:
        organization.name = changes.pop("name")
    if "logo" in changes:
        organization.logo = changes.pop("logo")
    if changes:
        # reassign so the JSON column is flagged dirty
        organization.metadata_ = {**(organization.metadata_ or {}), **changes}

    write_audit(db, organization, current_user, "CLINIC_UPDATED", "organization", organization.id,
                {"fields": sorted(request.model_dump(exclude_unset=True).keys())})
    db.commit()
    db.refresh(organization)
    logger.info("Clinic details updated for %s", organization.id)

    return {
        "status": "success",
        "message": "Clinic details updated",
        "clinic": serialize_clinic(organization)
    }
