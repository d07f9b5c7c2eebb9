from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from .session import Session
from ..domain.models import PackageInfo

# called with (bytes_downloaded, bytes_total); total is 0 when unknown
ProgressCallback = Callable[[int, int], None]


class RegistryClient(ABC):
    session: Session

    @abstractmethod
    def login(self, username: str, password: str) -> str:
        """Authenticate and return the session token."""
        pass

    @abstractmethod
    def fetch_metadata(self, package_name: str, version: str) -> PackageInfo:
        """Get metadata for a specific package version."""
        pass

    @abstractmethod
    def fetch_file(
        self,
        package_name: str,
        version: str,
        file: str,
        destination: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """Download one file of a package to the destination path."""
        pass
