"""Trade signal outcome verification and performance analytics."""

__version__ = "0.1.0"
