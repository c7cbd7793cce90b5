from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from database.connection import get_db
from database.models import Specialization, User
from api.auth import get_current_user
from pydantic import BaseModel, Field
from typing import Optional

router = APIRouter(prefix="/api/specializations", tags=["Specializations"])

# ==================== PYDANTIC MODELS ====================

class CreateSpecializationRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None

    class Config:
        str_strip_whitespace = True

# ==================== ENDPOINTS ====================

@router.get("", response_model=dict)
async def list_specializations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    rows = db.query(Specialization).order_by(Specialization.name.asc()).all()
    return {
        "status": "success",
        "specializations": [
            {"id": s.id, "name": s.name, "description": s.description}
            for s in rows
        ]
    }


@router.post("", response_model=dict, status_code=201)
async def create_specialization(
    request: CreateSpecializationRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if db.query(Specialization).filter(Specialization.name.ilike(request.name)).first():
        raise HTTPException(status_code=400, detail="Specialization already exists")

    specialization = Specialization(name=request.name, description=request.description)
    db.add(specialization)
    db.commit()
    db.refresh(specialization)

    return {
        "status": "success",
        "message": "Specialization added",
        "specialization": {
            "id": specialization.id,
            "name": specialization.name,
            "description": specialization.description
        }
    }
