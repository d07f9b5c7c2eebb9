import logging
from pathlib import Path
from typing import List, Optional

from ..domain.errors import PackageNotFoundError, StorageError
from ..ledger.store import LedgerStore
from ..ui.progress import ProgressManager
from ..utils.paths import prune_empty_dirs, resolve_within

logger = logging.getLogger(__name__)


class RemoveService:
    """deletes an installed package's files and its ledger entry."""
    
    def __init__(self, ledger: LedgerStore, install_dir: Path, progress_manager: Optional[ProgressManager] = None):
        self.ledger = ledger
        self.install_dir = Path(install_dir)
        self.progress_manager = progress_manager or ProgressManager()
    
    def remove(self, package_name: str) -> List[Path]:
        """
        remove a package.

        the first ledger record with this name is used, matching how the
        ledger itself removes entries.

        returns:
            the files that were deleted

        raises:
            PackageNotFoundError: if the package is not installed
            StorageError, LedgerParseError: if the ledger cannot be used
        """
        # 1. find the record (corrupt ledgers raise here instead of looking empty)
        record = next((r for r in self.ledger.load() if r.name == package_name), None)
        if record is None:
            raise PackageNotFoundError(package_name)

        # 2. delete files
        removed = []
        for file in record.files:
            try:
                path = resolve_within(self.install_dir, file)
            except StorageError as e:
                logger.warning(f"skipping recorded file of {package_name}: {e}")
                continue

            if not path.exists():
                logger.debug(f"{path} already gone")
                continue
            try:
                path.unlink()
            except OSError as e:
                raise StorageError(f"Could not remove {path}: {e}") from e
            removed.append(path)

        prune_empty_dirs(removed, self.install_dir)

        # 3. update ledger
        self.ledger.remove_package(package_name, record.version)

        self.progress_manager.print(
            f"[green]✓[/green] Removed [cyan]{package_name}[/cyan] {record.version} ({len(removed)} files)"
        )
        return removed
