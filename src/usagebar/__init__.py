"""usagebar: quota usage tracking for AI tooling providers."""

from ._version import __version__


__all__ = ["__version__"]
