"""
Basecamp - Course Runner

Loads structured programming courses, runs each exercise's tests as a
subprocess, tracks completion locally and unlocks exercises in order.
"""

__version__ = "0.1.0"
