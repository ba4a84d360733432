"""
Sales Data Warehouse
Configuration Module
"""
from .settings import MalformedKeyPolicy, Settings, get_settings

__all__ = ["MalformedKeyPolicy", "Settings", "get_settings"]
