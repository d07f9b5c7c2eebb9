import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from ..domain.errors import AlreadyInstalledError, StorageError
from ..domain.models import PackageInfo, PackageRecord
from ..ledger.store import LedgerStore
from ..registry.client import RegistryClient
from ..ui.progress import ProgressManager, format_size
from ..utils.paths import prune_empty_dirs, resolve_within

logger = logging.getLogger(__name__)


class InstallService:
    """downloads the files of a package and records them in the ledger."""

    def __init__(
        self,
        registry_client: RegistryClient,
        ledger: LedgerStore,
        install_dir: Path,
        progress_manager: Optional[ProgressManager] = None,
    ):
        self.registry_client = registry_client
        self.ledger = ledger
        self.install_dir = Path(install_dir)
        self.progress_manager = progress_manager or ProgressManager()

    def install(self, package_name: str, version: Optional[str] = None, force: bool = False) -> PackageRecord:
        """
        install one package version.

        files land in install_dir under their package-relative paths. archives
        are not unpacked and dependencies are not installed.

        args:
            package_name: name of the package
            version: version to install, latest if omitted
            force: reinstall even if this exact version is already recorded

        returns:
            the ledger record that was written

        raises:
            AlreadyInstalledError: if the version is recorded and force is false
            FdpkgError: if metadata or any file cannot be fetched; files of an
                installed version are left as they were and the ledger is unchanged
        """
        # 1. resolve the concrete version
        target_version = version or "latest"
        with self.progress_manager.spinner(f"fetching {package_name}@{target_version}"):
            info = self.registry_client.fetch_metadata(package_name, target_version)

        if not force and self.ledger.is_installed(package_name, info.version):
            raise AlreadyInstalledError(package_name, info.version)

        # 2. download into a staging dir, then move into place; installed files
        # are only touched once every download succeeded
        targets = [(file, resolve_within(self.install_dir, file)) for file in info.files]
        staging = self._make_staging_dir()
        try:
            staged = self._download_all(info, staging)
            written = self._move_into_place(staged, targets)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        # 3. drop files of a previously installed version that are gone now
        previous = self.ledger.get_record(package_name)
        if previous is not None and previous.version != info.version:
            self._remove_stale(previous, info)
            self.ledger.remove_package(package_name, previous.version)

        record = self.ledger.record_install(package_name, info.version, info.files)

        total_bytes = sum(path.stat().st_size for path in written if path.exists())
        self.progress_manager.print(
            f"[green]✓[/green] Installed [cyan]{package_name}[/cyan] {info.version} "
            f"({len(written)} files, {format_size(total_bytes)})"
        )
        if info.dependencies:
            self.progress_manager.print(f"[dim]Dependencies not installed: {', '.join(info.dependencies)}[/dim]")
        return record

    def _make_staging_dir(self) -> Path:
        try:
            self.install_dir.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix=".staging-", dir=self.install_dir))
        except OSError as e:
            raise StorageError(f"Could not create staging directory in {self.install_dir}: {e}") from e

    def _download_all(self, info: PackageInfo, staging: Path) -> List[Path]:
        staged = []
        for file in info.files:
            path = resolve_within(staging, file)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(f"Could not create directory {path.parent}: {e}") from e

            with self.progress_manager.file_download(file) as progress:
                self.registry_client.fetch_file(info.name, info.version, file, path, progress=progress)
            staged.append(path)
        return staged

    def _move_into_place(self, staged: List[Path], targets) -> List[Path]:
        written = []
        for source, (file, target) in zip(staged, targets):
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                os.replace(source, target)
            except OSError as e:
                raise StorageError(f"Could not install {file} to {target}: {e}") from e
            written.append(target)
        return written

    def _remove_stale(self, previous: PackageRecord, info: PackageInfo):
        stale = []
        for file in set(previous.files) - set(info.files):
            try:
                stale.append(resolve_within(self.install_dir, file))
            except StorageError as e:
                logger.warning(f"skipping recorded file of {previous.name}: {e}")
        self._discard(stale)

    def _discard(self, paths: List[Path]):
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"could not remove {path}: {e}")
        prune_empty_dirs(paths, self.install_dir)
