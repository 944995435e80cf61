"""
PrintJob - print-job submission and lifecycle tracking service.
"""

__version__ = "1.0.0"
