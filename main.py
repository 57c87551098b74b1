"""Service Entry Point - Root Module.

Root-level entry point for the ASGI server (uvicorn main:app).
It imports from the api package.
"""

from api.main import app

__all__ = [
    "app",
]
