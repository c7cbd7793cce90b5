# API Package - Centralized imports
# Allows easy importing of all routers and functions

from .auth import (
    router as auth_router,
    get_current_user,
    get_active_organization,
    create_access_token,
    create_refresh_token,
)
from .employees import router as employees_router
from .specializations import router as specializations_router
from .patients import router as patients_router
from .appointments import router as appointments_router
from .profile import router as profile_router, clinic_router
from .charges import router as charges_router
from .ambulance import router as ambulance_router
from .diagnostics import pathology_router, radiology_router
from .ipd import router as ipd_router
from .operations import router as operations_router
from .excel import router as excel_router, EXCEL_CONFIG_MAP
from .columns import router as columns_router

__all__ = [
    # Auth
    "auth_router",
    "get_current_user",
    "get_active_organization",
    "create_access_token",
    "create_refresh_token",

    # Routers
    "employees_router",
    "specializations_router",
    "patients_router",
    "appointments_router",
    "profile_router",
    "clinic_router",
    "charges_router",
    "ambulance_router",
    "pathology_router",
    "radiology_router",
    "ipd_router",
    "operations_router",
    "excel_router",
    "columns_router",

    # Excel
    "EXCEL_CONFIG_MAP",
]
