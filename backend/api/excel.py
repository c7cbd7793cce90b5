"""
Spreadsheet configuration, templates and error reports

Each entity that can be bulk-loaded has an ExcelConfig describing its
template columns and the file types its upload accepts. Templates and
error reports are generated with pandas (openpyxl engine).
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session
from database.connection import get_db
from database.models import Organization, ChargeType, ChargeCategory, Unit, TaxCategory, OperationCategory
from api.auth import get_active_organization
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from io import BytesIO
import pandas as pd
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/excel", tags=["Excel"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# ==================== PYDANTIC MODELS ====================

class ExcelColumn(BaseModel):
    key: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)

class ExcelTemplate(BaseModel):
    filename: str = Field(..., pattern=r'^[\w\-]+\.xlsx$')
    columns: List[ExcelColumn] = Field(..., min_length=1)
    download_url: str

class ExcelUpload(BaseModel):
    # filled sheets are imported outside this service; no upload route is served here
    supported: bool = False
    url: Optional[str] = None
    accept: List[str] = Field(..., min_length=1)

    @field_validator("accept")
    @classmethod
    def check_extensions(cls, value):
        for extension in value:
            if not extension.startswith("."):
                raise ValueError(f"Extension '{extension}' must start with a dot")
        return value

class ExcelConfig(BaseModel):
    title: str = Field(..., min_length=1)
    template: ExcelTemplate
    upload: ExcelUpload

class ErrorReportRequest(BaseModel):
    rows: List[Dict[str, Any]]
    filename: Optional[str] = Field(None, pattern=r'^[\w\-]+$')

# ==================== CONFIG ====================

def _config(entity: str, title: str, columns: List[tuple]) -> ExcelConfig:
    return ExcelConfig(
        title=title,
        template=ExcelTemplate(
            filename=f"{entity}_template.xlsx",
            columns=[ExcelColumn(key=key, label=label) for key, label in columns],
            download_url=f"/api/excel/{entity}/template",
        ),
        upload=ExcelUpload(accept=[".xlsx"]),
    )

# validated when the module is imported
EXCEL_CONFIG_MAP: Dict[str, ExcelConfig] = {
    "patient": _config("patient", "Patient", [
        ("name", "Patient Name"),
        ("gender", "Gender"),
        ("dob", "Date of Birth"),
        ("email", "Email"),
        ("mobile_number", "Mobile Number"),
        ("address", "Address"),
        ("city", "City"),
        ("state", "State"),
        ("area_or_pin", "Area / PIN"),
        ("blood_group", "Blood Group"),
        ("referred_by_dr", "Referred By Doctor"),
    ]),
    "hospital_charge_unit": _config("hospital_charge_unit", "Hospital Charge Unit", [
        ("name", "Unit Name"),
    ]),
    "hospital_charge_tax_category": _config("hospital_charge_tax_category", "Hospital Tax Category", [
        ("name", "Tax Category Name"),
        ("percent", "Percent (%)"),
    ]),
    "charges": _config("charges", "Charges", [
        ("name", "Charge Name"),
        ("charge_type", "Charge Type"),
        ("charge_category", "Charge Category"),
        ("unit", "Unit"),
        ("tax_category", "Tax Category"),
        ("amount", "Amount"),
        ("description", "Description"),
    ]),
    "operation": _config("operation", "Operation", [
        ("name", "Operation Name"),
        ("operation_category", "Operation Category"),
    ]),
}

# ==================== HELPER FUNCTIONS ====================

def get_config(entity: str) -> ExcelConfig:
    config = EXCEL_CONFIG_MAP.get(entity)
    if not config:
        raise HTTPException(status_code=404, detail="Invalid excel entity")
    return config


def workbook_bytes(sheets: Dict[str, pd.DataFrame]) -> bytes:
    """Write each DataFrame to its own sheet and return the .xlsx content"""
    with BytesIO() as bio:
        with pd.ExcelWriter(bio, engine="openpyxl") as writer:
            for sheet_name, df in sheets.items():
                df.to_excel(writer, sheet_name=sheet_name, index=False)
        return bio.getvalue()


def xlsx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


def lookup_sheets(entity: str, db: Session, organization: Organization) -> Dict[str, pd.DataFrame]:
    """Reference sheets listing the names a template's dropdown columns accept"""
    def names(model):
        query = db.query(model.name).filter(model.organization_id == organization.id)
        if hasattr(model, "is_deleted"):
            query = query.filter(model.is_deleted.is_(False))
        return pd.DataFrame({"name": [row.name for row in query.order_by(model.name).all()]})

    if entity == "charges":
        return {
            "ChargeTypes": names(ChargeType),
            "ChargeCategories": names(ChargeCategory),
            "Units": names(Unit),
            "TaxCategories": names(TaxCategory),
        }
    if entity == "operation":
        return {"OperationCategories": names(OperationCategory)}
    return {}

# ==================== ENDPOINTS ====================

@router.post("/error-report")
async def error_report(
    request: ErrorReportRequest,
    organization: Organization = Depends(get_active_organization)
):
    """
    📄 ERROR REPORT

    Rows rejected by an import, as a spreadsheet. Columns come from the
    first row's keys.
    """
    if not request.rows:
        raise HTTPException(status_code=400, detail="No error rows to export")

    columns = list(request.rows[0].keys())
    df = pd.DataFrame(request.rows, columns=columns)
    filename = f"{request.filename or 'error_report_' + datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"

    logger.info("Error report with %d rows generated for %s", len(df), organization.id)
    return xlsx_response(workbook_bytes({"Errors": df}), filename)


@router.get("/{entity}", response_model=dict)
async def get_excel_config(
    entity: str,
    organization: Organization = Depends(get_active_organization)
):
    """Template/upload configuration for one entity"""
    return {"status": "success", "config": get_config(entity).model_dump()}


@router.get("/{entity}/template")
async def download_template(
    entity: str,
    organization: Organization = Depends(get_active_organization),
    db: Session = Depends(get_db)
):
    """📥 Empty .xlsx whose header row is the template's column labels"""
    config = get_config(entity)
    labels = [column.label for column in config.template.columns]

    sheets = {config.title[:31]: pd.DataFrame(columns=labels)}
    sheets.update(lookup_sheets(entity, db, organization))

    return xlsx_response(workbook_bytes(sheets), config.template.filename)
