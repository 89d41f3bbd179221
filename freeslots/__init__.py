"""
freeslots - calendar availability from working hours and busy events.
"""

__version__ = "0.1.0"
