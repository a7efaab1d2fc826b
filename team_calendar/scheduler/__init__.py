"""Scheduler Module

Handles the team calendar bookings and their permission rules.
"""

from .scheduler import Scheduler, sanitize_title

__all__ = ["Scheduler", "sanitize_title"]
