"""Media backends for Cadence."""

from .contracts import MediaDataSource

__all__ = ["MediaDataSource"]
