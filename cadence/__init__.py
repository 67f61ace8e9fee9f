"""Cadence: a unified media-provider layer over local and Subsonic libraries."""

__version__ = "0.1.0"

__all__ = ["__version__"]
