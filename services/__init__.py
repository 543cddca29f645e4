"""
Services Module - Host services for Regexp Handler
==================================================

This module provides the host the rules engine runs inside:
- Message: the routed unit of work
- MessageBus: subscriptions, dispatch, queue and output channels
"""

from .message import Message
from .bus import MessageBus, Subscription

__all__ = [
    "Message",
    "MessageBus",
    "Subscription",
]
