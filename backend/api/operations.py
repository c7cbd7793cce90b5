from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload
from database.connection import get_db
from database.models import User, Organization, Operation, OperationCategory, IpdOperation
from api.auth import get_current_user, get_active_organization
from api.common import write_audit
from billing import soft_delete, restore, permanently_delete, InvalidTransition
from billing.lifecycle import get_or_404, visible
from pydantic import BaseModel, Field
from typing import Optional

router = APIRouter(prefix="/api/operations", tags=["Operation Catalog"])

# ==================== PYDANTIC MODELS ====================

class OperationCategoryRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)

class OperationCatalogRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    operation_category_id: str

# ==================== HELPER FUNCTIONS ====================

def serialize_category(category: OperationCategory) -> dict:
    return {"id": category.id, "name": category.name, "is_deleted": category.is_deleted}

def serialize_operation(operation: Operation) -> dict:
    return {
        "id": operation.id,
        "name": operation.name,
        "operation_category_id": operation.operation_category_id,
        "category": operation.category.name if operation.category else None,
        "is_deleted": operation.is_deleted,
        "actions": ["restore", "permanent_delete"] if operation.is_deleted else ["edit", "delete"],
    }

def category_query(db: Session, organization: Organization):
    return db.query(OperationCategory).filter(OperationCategory.organization_id == organization.id)

def operation_query(db: Session, organization: Organization):
    return db.query(Operation).options(joinedload(Operation.category)).filter(
        Operation.organization_id == organization.id
    )

def require_category(db: Session, organization: Organization, category_id: str) -> OperationCategory:
    category = category_query(db, organization).filter(
        OperationCategory.id == category_id,
        OperationCategory.is_deleted.is_(False)
    ).first()
    if not category:
        raise HTTPException(status_code=400, detail="Unknown operation category")
    return category

# ==================== CATEGORIES ====================

@router.get("/categories", response_model=dict)
async def list_categories(
    show_deleted: bool = Query(False),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    query = visible(category_query(db, organization), OperationCategory, show_deleted)
    categories = query.order_by(OperationCategory.name.asc()).all()
    return {"status": "success", "categories": [serialize_category(c) for c in categories]}


@router.post("/categories", response_model=dict, status_code=201)
async def create_category(
    request: OperationCategoryRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    category = OperationCategory(organization_id=organization.id, name=request.name)
    db.add(category)
    db.flush()
    write_audit(db, organization, current_user, "OPERATION_CATEGORY_CREATED", "operation_category", category.id)
    db.commit()
    db.refresh(category)
    return {"status": "success", "message": "Category created", "category": serialize_category(category)}


@router.delete("/categories/{category_id}", response_model=dict)
async def delete_category(
    category_id: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    category = get_or_404(category_query(db, organization), OperationCategory, category_id, "Operation category")
    message = soft_delete(category, "Operation category")
    write_audit(db, organization, current_user, "OPERATION_CATEGORY_DELETED", "operation_category", category.id)
    db.commit()
    return {"status": "success", "message": message}


@router.post("/categories/{category_id}/restore", response_model=dict)
async def restore_category(
    category_id: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    category = get_or_404(category_query(db, organization), OperationCategory, category_id, "Operation category")
    message = restore(category, "Operation category")
    write_audit(db, organization, current_user, "OPERATION_CATEGORY_RESTORED", "operation_category", category.id)
    db.commit()
    return {"status": "success", "message": message}

# ==================== OPERATIONS ====================

@router.get("", response_model=dict)
async def list_operations(
    category_id: Optional[str] = None,
    search: Optional[str] = None,
    show_deleted: bool = Query(False),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """🔪 Operation catalog"""
    query = visible(operation_query(db, organization), Operation, show_deleted)
    if category_id:
        query = query.filter(Operation.operation_category_id == category_id)
    if search:
        query = query.filter(Operation.name.ilike(f"%{search}%"))
    operations = query.order_by(Operation.name.asc()).all()
    return {"status": "success", "operations": [serialize_operation(o) for o in operations]}


@router.post("", response_model=dict, status_code=201)
async def create_operation(
    request: OperationCatalogRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    require_category(db, organization, request.operation_category_id)
    operation = Operation(
        organization_id=organization.id,
        name=request.name,
        operation_category_id=request.operation_category_id
    )
    db.add(operation)
    db.flush()
    write_audit(db, organization, current_user, "OPERATION_CREATED", "operation", operation.id,
                {"name": operation.name})
    db.commit()
    db.refresh(operation)
    return {"status": "success", "message": "Operation created", "operation": serialize_operation(operation)}


@router.get("/{operation_id}", response_model=dict)
async def get_operation(
    operation_id: str,
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    operation = get_or_404(operation_query(db, organization), Operation, operation_id, "Operation")
    return {"status": "success", "operation": serialize_operation(operation)}


@router.put("/{operation_id}", response_model=dict)
async def update_operation(
    operation_id: str,
    request: OperationCatalogRequest,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    operation = get_or_404(operation_query(db, organization), Operation, operation_id, "Operation")
    if operation.is_deleted:
        raise InvalidTransition("Restore the operation before editing it")
    require_category(db, organization, request.operation_category_id)

    operation.name = request.name
    operation.operation_category_id = request.operation_category_id
    write_audit(db, organization, current_user, "OPERATION_UPDATED", "operation", operation.id)
    db.commit()
    db.refresh(operation)
    return {"status": "success", "message": "Operation updated", "operation": serialize_operation(operation)}


@router.delete("/{operation_id}", response_model=dict)
async def delete_operation(
    operation_id: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    operation = get_or_404(operation_query(db, organization), Operation, operation_id, "Operation")
    message = soft_delete(operation, "Operation")
    write_audit(db, organization, current_user, "OPERATION_DELETED", "operation", operation.id)
    db.commit()
    return {"status": "success", "message": message}


@router.post("/{operation_id}/restore", response_model=dict)
async def restore_operation(
    operation_id: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    operation = get_or_404(operation_query(db, organization), Operation, operation_id, "Operation")
    message = restore(operation, "Operation")
    write_audit(db, organization, current_user, "OPERATION_RESTORED", "operation", operation.id)
    db.commit()
    return {"status": "success", "message": message, "operation": serialize_operation(operation)}


@router.delete("/{operation_id}/permanent", response_model=dict)
async def purge_operation(
    operation_id: str,
    current_user: User = Depends(get_current_user),
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """Remove a deleted operation for good; refused while admissions reference it"""
    operation = get_or_404(operation_query(db, organization), Operation, operation_id, "Operation")
    in_use = db.query(IpdOperation).filter(IpdOperation.operation_id == operation.id).count()
    if in_use:
        raise InvalidTransition(f"Operation is recorded on {in_use} admission(s) and cannot be removed")

    message = permanently_delete(db, operation, "Operation")
    write_audit(db, organization, current_user, "OPERATION_PURGED", "operation", operation_id)
    db.commit()
    return {"status": "success", "message": message}
