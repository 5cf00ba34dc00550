"""
SDK for Multi AI Hub.

Provides programmatic access to the quota-checked chat gateway.
"""

from .gateway_client import GatewayChatClient

__all__ = ["GatewayChatClient"]
