"""
bookingengine - Availability, recurrence and conflict engine for coworking spaces.
"""

__version__ = "0.1.0"
