from .time_window import TimeWindow, compute_end_time

__all__ = ["TimeWindow", "compute_end_time"]
