# config/__init__.py
from .settings import Settings, settings

__all__ = ['Settings', 'settings']
