"""Channels module - messaging channel adapters."""

from .base import ChannelAdapter
from .feishu import FeishuChannel, RecentEvents

__all__ = ['ChannelAdapter', 'FeishuChannel', 'RecentEvents']
