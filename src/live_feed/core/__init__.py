"""Core configuration and constants.

Import what you need from `live_feed.core.config` and
`live_feed.core.constants` to avoid heavy side effects at import time.
"""

__all__ = ["config", "constants"]
