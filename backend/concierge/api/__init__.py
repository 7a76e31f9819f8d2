"""API module."""

from .admin import router as admin_router
from .feishu_webhook import router as feishu_router
from .observers import router as observers_router

__all__ = ['admin_router', 'feishu_router', 'observers_router']
