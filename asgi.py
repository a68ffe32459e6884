"""
asgi.py -- ASGI entry point for Stockroom.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
