"""CLI commands package."""

from . import integrations, nonces

__all__ = [
    'integrations',
    'nonces',
]
