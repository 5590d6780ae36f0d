"""
Document AI Backend Application.

A FastAPI service that extracts text from document images and classifies
documents into structured fields, falling back across several AI providers.
"""

__version__ = "1.0.0"
