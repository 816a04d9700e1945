"""Push delivery."""

from .relay import INVALID_TOKEN, ExpoPushRelay, IPushRelay

__all__ = ["INVALID_TOKEN", "ExpoPushRelay", "IPushRelay"]
