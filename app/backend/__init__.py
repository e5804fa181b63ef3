"""
Receipt Processor Backend Application.

A FastAPI service that reads PDF receipts, extracts their fields with a
Gemini model and exports them to Excel.
"""

__version__ = "1.0.0"
