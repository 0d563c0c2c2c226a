"""
Hub

Version-authoritative configuration store served over FastAPI.
"""

from .main import create_app
from .settings import HubSettings, get_settings

__all__ = ["create_app", "HubSettings", "get_settings"]
