"""
Infrastructure Package.

Provides the pooled browser used to open one tab per checked link.
"""

from .browser_pool import (
    BrowserPool,
    ContextMetrics,
)

__all__ = [
    "BrowserPool",
    "ContextMetrics",
]
