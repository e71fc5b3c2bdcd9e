from fastapi import APIRouter
from .applications import router as applications_router, opportunity_router
from .contracts import router as contracts_router

# Create main v1 router
router = APIRouter(prefix="/api/v1")

# Include all route modules
router.include_router(applications_router)
router.include_router(opportunity_router)
router.include_router(contracts_router)
