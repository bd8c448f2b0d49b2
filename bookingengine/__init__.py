"""
Scheduling and availability engine for a single practitioner.
"""

__version__ = "0.1.0"
