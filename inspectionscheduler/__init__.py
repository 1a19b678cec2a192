"""
Inspection slot allocation and inspector assignment for lead intake.
"""

__version__ = "0.1.0"
