"""
Tradewise API Module

FastAPI application serving the analytics and signal engines.
"""

from .dependencies import Container, get_container
from .main import create_app

__all__ = ["Container", "get_container", "create_app"]
