from fastapi import APIRouter, Depends
from database.models import User
from api.auth import get_current_user
from billing import ColumnSelection, MODULE_COLUMNS
from pydantic import BaseModel
from typing import List, Optional

router = APIRouter(prefix="/api/columns", tags=["Columns"])

# ==================== PYDANTIC MODELS ====================

class ToggleColumnRequest(BaseModel):
    visible: Optional[List[str]] = None  # current selection, module default when omitted
    key: str
    checked: Optional[bool] = None  # explicit state; flips the key when omitted

# ==================== ENDPOINTS ====================

@router.get("", response_model=dict)
async def list_modules(
    current_user: User = Depends(get_current_user)
):
    return {"status": "success", "modules": sorted(MODULE_COLUMNS.keys())}


@router.get("/{module}", response_model=dict)
async def get_columns(
    module: str,
    current_user: User = Depends(get_current_user)
):
    """Available columns and the default visible set for a list screen"""
    selection = ColumnSelection(module)
    return {
        "status": "success",
        "module": module,
        "available": selection.available,
        "default": selection.visible_columns()
    }


@router.post("/{module}/toggle", response_model=dict)
async def toggle_column(
    module: str,
    request: ToggleColumnRequest,
    current_user: User = Depends(get_current_user)
):
    """Show/hide one column; `actions` always stays last"""
    selection = ColumnSelection(module, request.visible)
    if request.checked is None:
        selection = selection.toggle(request.key)
    else:
        selection = selection.set(request.key, request.checked)
    return {"status": "success", "columns": selection.to_dict()}
