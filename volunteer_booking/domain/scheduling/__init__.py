"""Scheduling domain - slot capacity, host assignment, bookings and their side effects"""

from .router import router

__all__ = ["router"]
