from .availability_config import AvailabilityConfig, get_availability_config

__all__ = ["AvailabilityConfig", "get_availability_config"]
