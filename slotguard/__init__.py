"""
slotguard - availability slots and booking-time validation.
"""

__version__ = "0.1.0"
