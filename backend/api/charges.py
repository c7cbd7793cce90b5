from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload
from database.connection import get_db
from database.models import (
    User, Organization, ChargeType, ChargeCategory, Unit, TaxCategory, Charge
)
from api.auth import get_current_user, get_active_organization
from api.common import money, write_audit
from billing import soft_delete, restore
from billing.lifecycle import get_or_404, visible
from pydantic import BaseModel, Field, field_validator
from typing import Callable, List, Optional, Type
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/charges", tags=["Pricing Catalog"])

CHARGE_MODULES = {"ipd", "opd", "ambulance", "pathology", "radiology"}

# ==================== PYDANTIC MODELS ====================

class ChargeTypeRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    modules: List[str] = Field(..., min_length=1)

    @field_validator("modules")
    @classmethod
    def check_modules(cls, value):
        unknown = set(value) - CHARGE_MODULES
        if unknown:
            raise ValueError(f"Unknown modules: {', '.join(sorted(unknown))}")
        return value

class ChargeCategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    charge_type_id: str

class TaxCategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    percent: Decimal = Field(..., ge=0, le=100)

class UnitRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)

class ChargeRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    charge_category_id: str
    charge_type_id: str
    unit_id: str
    tax_category_id: str
    amount: Decimal = Field(..., ge=0)

# ==================== HELPER FUNCTIONS ====================

def serialize_charge_type(row: ChargeType) -> dict:
    return {"id": row.id, "name": row.name, "modules": row.modules or [], "is_deleted": row.is_deleted}

def serialize_category(row: ChargeCategory) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "charge_type_id": row.charge_type_id,
        "charge_type": row.charge_type.name if row.charge_type else None,
        "is_deleted": row.is_deleted,
    }

def serialize_tax_category(row: TaxCategory) -> dict:
    return {"id": row.id, "name": row.name, "percent": money(row.percent), "is_deleted": row.is_deleted}

def serialize_unit(row: Unit) -> dict:
    return {"id": row.id, "name": row.name}

def serialize_charge(row: Charge) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "amount": money(row.amount),
        "charge_category_id": row.charge_category_id,
        "category": row.category.name if row.category else None,
        "charge_type_id": row.charge_type_id,
        "charge_type": row.charge_type.name if row.charge_type else None,
        "unit_id": row.unit_id,
        "unit": row.unit.name if row.unit else None,
        "tax_category_id": row.tax_category_id,
        "tax_percent": money(row.tax_category.percent) if row.tax_category else 0.0,
        "is_deleted": row.is_deleted,
    }


def require_ref(db: Session, organization: Organization, model: Type, record_id: str, field: str):
    """Referenced catalog row must exist in the same organization"""
    row = db.query(model).filter(
        model.id == record_id,
        model.organization_id == organization.id
    ).first()
    if not row:
        raise HTTPException(status_code=400, detail=f"Unknown {field}: {record_id}")
    return row


def check_charge_refs(db: Session, organization: Organization, request: ChargeRequest) -> None:
    require_ref(db, organization, ChargeCategory, request.charge_category_id, "charge_category_id")
    require_ref(db, organization, ChargeType, request.charge_type_id, "charge_type_id")
    require_ref(db, organization, Unit, request.unit_id, "unit_id")
    require_ref(db, organization, TaxCategory, request.tax_category_id, "tax_category_id")


def catalog_routes(
    path: str,
    model: Type,
    schema: Type[BaseModel],
    serializer: Callable,
    label: str,
    collection: str,
    check_refs: Optional[Callable] = None,
    with_list: bool = True,
):
    """List/create/update/delete (+ restore when the row is soft-deletable) for one catalog table"""
    soft = hasattr(model, "is_deleted")

    def scoped(db: Session, organization: Organization):
        return db.query(model).filter(model.organization_id == organization.id)

    async def list_rows(
        show_deleted: bool = Query(False),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        query = scoped(db, organization)
        if soft:
            query = visible(query, model, show_deleted)
        rows = query.order_by(model.name.asc()).all()
        return {"status": "success", collection: [serializer(r) for r in rows]}

    if with_list:
        router.get(path, response_model=dict, name=f"list_{collection}")(list_rows)

    @router.post(path, response_model=dict, status_code=201, name=f"create_{collection}")
    async def create_row(
        request: schema,
        current_user: User = Depends(get_current_user),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        if check_refs:
            check_refs(db, organization, request)
        row = model(organization_id=organization.id, **request.model_dump())
        db.add(row)
        db.flush()
        write_audit(db, organization, current_user, f"{label.upper().replace(' ', '_')}_CREATED",
                    model.__tablename__, row.id, {"name": row.name})
        db.commit()
        db.refresh(row)
        return {"status": "success", "message": f"{label} created", "data": serializer(row)}

    @router.put(f"{path}/{{record_id}}", response_model=dict, name=f"update_{collection}")
    async def update_row(
        record_id: str,
        request: schema,
        current_user: User = Depends(get_current_user),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        row = get_or_404(scoped(db, organization), model, record_id, label)
        if check_refs:
            check_refs(db, organization, request)
        for key, value in request.model_dump().items():
            setattr(row, key, value)
        write_audit(db, organization, current_user, f"{label.upper().replace(' ', '_')}_UPDATED",
                    model.__tablename__, row.id)
        db.commit()
        db.refresh(row)
        return {"status": "success", "message": f"{label} updated", "data": serializer(row)}

    @router.delete(f"{path}/{{record_id}}", response_model=dict, name=f"delete_{collection}")
    async def delete_row(
        record_id: str,
        current_user: User = Depends(get_current_user),
        organization: Organization = Depends(get_active_organization),
        db: Session = Depends(get_db)
    ):
        row = get_or_404(scoped(db, organization), model, record_id, label)
        if soft:
            message = soft_delete(row, label)
        else:
            db.delete(row)
            message = f"{label} deleted"
        write_audit(db, organization, current_user, f"{label.upper().replace(' ', '_')}_DELETED",
                    model.__tablename__, record_id)
        db.commit()
        return {"status": "success", "message": message}

    if soft:
        @router.post(f"{path}/{{record_id}}/restore", response_model=dict, name=f"restore_{collection}")
        async def restore_row(
            record_id: str,
            current_user: User = Depends(get_current_user),
            organization: Organization = Depends(get_active_organization),
            db: Session = Depends(get_db)
        ):
            row = get_or_404(scoped(db, organization), model, record_id, label)
            message = restore(row, label)
            write_audit(db, organization, current_user, f"{label.upper().replace(' ', '_')}_RESTORED",
                        model.__tablename__, record_id)
            db.commit()
            return {"status": "success", "message": message, "data": serializer(row)}

# ==================== ENDPOINTS ====================

def check_category_refs(db: Session, organization: Organization, request: ChargeCategoryRequest) -> None:
    require_ref(db, organization, ChargeType, request.charge_type_id, "charge_type_id")


# static paths first so "/types" is never read as a charge id
catalog_routes("/types", ChargeType, ChargeTypeRequest, serialize_charge_type, "Charge type", "charge_types")
catalog_routes("/categories", ChargeCategory, ChargeCategoryRequest, serialize_category,
               "Charge category", "charge_categories", check_category_refs)
catalog_routes("/tax-categories", TaxCategory, TaxCategoryRequest, serialize_tax_category,
               "Tax category", "tax_categories")
catalog_routes("/units", Unit, UnitRequest, serialize_unit, "Unit", "units")


@router.get("", response_model=dict)
async def list_charges(
    module: Optional[str] = Query(None, description="Only charges whose type applies to this module"),
    search: Optional[str] = None,
    show_deleted: bool = Query(False),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """💰 Charges with their category, unit and tax percent"""
    query = db.query(Charge).options(
        joinedload(Charge.category), joinedload(Charge.charge_type),
        joinedload(Charge.unit), joinedload(Charge.tax_category)
    ).filter(Charge.organization_id == organization.id)
    query = visible(query, Charge, show_deleted)
    if search:
        query = query.filter(Charge.name.ilike(f"%{search}%"))

    charges = query.order_by(Charge.name.asc()).all()
    if module:
        # modules is a JSON list, filtered in Python to stay portable
        charges = [c for c in charges if c.charge_type and module in (c.charge_type.modules or [])]

    return {"status": "success", "charges": [serialize_charge(c) for c in charges]}


catalog_routes("", Charge, ChargeRequest, serialize_charge, "Charge", "charges", check_charge_refs,
               with_list=False)


@router.get("/{charge_id}", response_model=dict)
async def get_charge(
    charge_id: str,
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    query = db.query(Charge).filter(Charge.organization_id == organization.id)
    charge = get_or_404(query, Charge, charge_id, "Charge")
    return {"status": "success", "charge": serialize_charge(charge)}
