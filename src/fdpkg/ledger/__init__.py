"""local record of installed packages."""
from .store import LedgerStore

__all__ = ["LedgerStore"]
