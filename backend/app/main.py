from fastapi import FastAPI

from core.config import get_settings
from core.exceptions import register_exception_handlers
from app.startup import configure_startup_logging, run_startup_checks

# ========== Reservations ==========
from modules.reservations.routes import router as reservations_router

settings = get_settings()

app = FastAPI(
    title="Tablewise - Reservation Availability API",
    description="""
    Table availability and booking conflict resolution for restaurants.

    ## Features

    * **Availability** - Open start times for a party on a date
    * **Booking Evaluation** - Conflicts and ranked resolution proposals before booking
    * **Booking Submission** - Race-free booking writes with automatic table assignment
    * **Conflict Audit** - Daily scan of existing bookings with proposals for staff
    """,
    version="1.0.0",
    debug=settings.debug,
)

# Register exception handlers for consistent error responses
register_exception_handlers(app)

app.include_router(reservations_router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup"""
    configure_startup_logging()
    run_startup_checks()


@app.get("/")
def read_root():
    return {"message": "Tablewise backend is running"}
