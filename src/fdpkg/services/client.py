import logging
from pathlib import Path
from typing import Optional

from ..domain.errors import FdpkgError
from ..domain.models import PackageInfo
from ..registry.client import RegistryClient
from ..ui.progress import ProgressManager

logger = logging.getLogger(__name__)


class PackageClient:
    """
    user-facing entry point to the registry.

    reports outcomes on the console instead of raising, except for
    fetch_metadata which leaves error handling to the caller. ledger updates
    are not made here; see InstallService for the full sequence.
    """

    def __init__(self, registry_client: RegistryClient, progress_manager: Optional[ProgressManager] = None):
        self.registry_client = registry_client
        self.progress_manager = progress_manager or ProgressManager()

    @property
    def session(self):
        return self.registry_client.session

    def login(self, username: str, password: str) -> bool:
        """log in and keep the token on this client's session."""
        try:
            self.registry_client.login(username, password)
        except FdpkgError as e:
            logger.debug(f"login failed: {e}")
            self.progress_manager.print(f"[red]Login failed[/red] {e}")
            return False

        self.progress_manager.print("[green]Login successful[/green]")
        return True

    def fetch_metadata(self, package_name: str, version: str) -> PackageInfo:
        return self.registry_client.fetch_metadata(package_name, version)

    def fetch_latest_version(self, package_name: str) -> str:
        """
        version string of the newest release of a package.

        returns:
            the version, or an empty string if it could not be determined
        """
        try:
            return self.fetch_metadata(package_name, "latest").version
        except FdpkgError as e:
            logger.warning(f"could not determine latest version of {package_name}: {e}")
            return ""

    def fetch_file(self, package_name: str, version: str, file: str, destination: Path) -> bool:
        """download one package file, drawing a progress bar named after it."""
        try:
            with self.progress_manager.file_download(file) as progress:
                self.registry_client.fetch_file(package_name, version, file, destination, progress=progress)
        except FdpkgError as e:
            self.progress_manager.print(f"[red]Download of {file} failed:[/red] {e}")
            return False
        return True
