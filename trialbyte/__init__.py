"""
TRIALBYTE - Therapeutics Data Platform
======================================
Clinical-trial record storage, activity logging and trial search.
"""

__version__ = "1.0.0"
