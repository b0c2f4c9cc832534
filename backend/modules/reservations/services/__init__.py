from .availability_rules import AvailabilityRules
from .table_allocator import TableAllocator, TableIndex
from .conflict_detector import ConflictDetector
from .conflict_resolver import ConflictResolver
from .availability_service import AvailabilityService
from .reservation_store import ReservationStore
from .booking_service import BookingService

__all__ = [
    "AvailabilityRules",
    "TableAllocator",
    "TableIndex",
    "ConflictDetector",
    "ConflictResolver",
    "AvailabilityService",
    "ReservationStore",
    "BookingService",
]
