"""
Serving Module

HTTP surface of the insights engine.
"""
from .api import create_api_app

__all__ = ["create_api_app"]
