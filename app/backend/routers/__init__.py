"""
Routers package for FastAPI endpoints.

Organized by domain:
- ai: Text extraction, document analysis and provider status
- upload: Upload-and-process pipeline
"""

from . import ai, upload

__all__ = ["ai", "upload"]
