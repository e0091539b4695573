"""
Configuration module for the webhook relay.
"""

from .relay_config import RelayConfig, ChannelConfig, SuppressionConfig

__all__ = [
    "RelayConfig",
    "ChannelConfig",
    "SuppressionConfig"
]
