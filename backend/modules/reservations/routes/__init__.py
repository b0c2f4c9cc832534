from fastapi import APIRouter
from .availability_routes import router as availability_router
from .booking_routes import router as booking_router

# Create main router
router = APIRouter(prefix="/restaurants/{restaurant_id}", tags=["Reservations"])

# Include sub-routers
router.include_router(availability_router)
router.include_router(booking_router)

__all__ = ["router"]
