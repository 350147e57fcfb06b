"""
Clinic Scheduler

A FastAPI service for booking clinic appointments without double-booking,
with role-based access for patients, doctors and administrators.
"""

__version__ = "1.0.0"
