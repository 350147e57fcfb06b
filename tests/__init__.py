"""
Test suite for the Clinic Scheduler.

Contains unit tests for the scheduling engines and API tests for the
HTTP surface.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
