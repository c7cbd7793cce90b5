from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from api import (
    auth_router,
    employees_router,
    specializations_router,
    patients_router,
    appointments_router,
    profile_router,
    clinic_router,
    charges_router,
    ambulance_router,
    pathology_router,
    radiology_router,
    ipd_router,
    operations_router,
    excel_router,
    columns_router,
)
from billing import BillingError
from database.connection import engine, Base
from dotenv import load_dotenv
import logging
import os
import uvicorn

load_dotenv()

# ==================== CONFIG ====================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="HMS Billing API",
    description="Hospital management: employees, ambulance, IPD, pathology and radiology billing",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    """Billing rule violations -> {"status": "error", "error": {code, message, field}}"""
    logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(auth_router)
app.include_router(employees_router)
app.include_router(specializations_router)
app.include_router(patients_router)
app.include_router(appointments_router)
app.include_router(profile_router)
app.include_router(clinic_router)
app.include_router(charges_router)
app.include_router(ambulance_router)
app.include_router(pathology_router)
app.include_router(radiology_router)
app.include_router(ipd_router)
app.include_router(operations_router)
app.include_router(excel_router)
app.include_router(columns_router)

@app.get("/")
async def root():
    return {
        "message": "HMS Billing API",
        "status": "running",
        "version": "1.0.0",
        "endpoints": {
            "auth": "/api/auth",
            "employees": "/api/employees",
            "specializations": "/api/specializations",
            "patients": "/api/patients",
            "profile": "/api/profile",
            "clinic": "/api/clinic",
            "charges": "/api/charges",
            "ambulance": "/api/ambulance",
            "pathology": "/api/pathology",
            "radiology": "/api/radiology",
            "ipd": "/api/ipd",
            "operations": "/api/operations",
            "excel": "/api/excel",
            "columns": "/api/columns",
            "docs": "/docs"
        }
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=True)
