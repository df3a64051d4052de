"""Centralized v1 API router — all module routers are included here."""

from fastapi import APIRouter

from solarerp.modules.billing.router import router as billing_router
from solarerp.modules.tenancy.router import admin_router
from solarerp.modules.tenancy.router import router as tenancy_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(tenancy_router)
v1_router.include_router(admin_router)
v1_router.include_router(billing_router)
