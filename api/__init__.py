"""
API Package.

FastAPI application and routers over the verification core.
"""

from api.main import create_app

__all__ = ["create_app"]
