"""
ERP Insights Engine
Configuration Module
"""
from .settings import InsightsSettings, Settings, get_settings

__all__ = ["InsightsSettings", "Settings", "get_settings"]
