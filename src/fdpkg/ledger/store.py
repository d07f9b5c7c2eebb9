import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional

from ..domain.errors import LedgerParseError, PackageNotFoundError, ParseError, StorageError
from ..domain.models import ANY_VERSION, PackageRecord, dump_records, parse_records

logger = logging.getLogger(__name__)


class LedgerStore:
    """
    handles persistence of the installed-package ledger.

    every operation loads the whole file and mutations rewrite it. there is no
    locking, so only one process may write a ledger at a time.
    """

    def __init__(self, ledger_file: Path):
        self.ledger_file = Path(ledger_file)

    def load(self) -> List[PackageRecord]:
        """
        load all records in insertion order.

        returns:
            the records, or an empty list if the ledger does not exist yet

        raises:
            StorageError: if the file exists but cannot be read
            LedgerParseError: if the file is not a valid ledger
        """
        if not self.ledger_file.exists():
            return []

        try:
            raw = self.ledger_file.read_bytes()
        except OSError as e:
            raise StorageError(f"Could not open file for reading: {self.ledger_file} ({e})") from e

        if not raw.strip():
            return []

        try:
            return parse_records(raw)
        except ParseError as e:
            raise LedgerParseError(self.ledger_file, str(e)) from e

    def save(self, records: Iterable[PackageRecord]) -> None:
        """
        replace the ledger with the given records.

        the data is written to a temporary file next to the ledger and moved
        over it, so the previous ledger survives any failure.

        raises:
            StorageError: if the ledger cannot be written
        """
        data = dump_records(list(records))
        parent = self.ledger_file.parent

        try:
            parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.ledger_file.name}.", suffix=".tmp", dir=parent)
        except OSError as e:
            raise StorageError(f"Could not open file for writing: {self.ledger_file} ({e})") from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, self._file_mode())
            os.replace(tmp_path, self.ledger_file)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Could not write ledger: {self.ledger_file} ({e})") from e

    def list_packages(self) -> List[PackageRecord]:
        """all records in insertion order."""
        return self.load()

    def is_installed(self, package_name: str, version: str = ANY_VERSION) -> bool:
        """
        check whether a package is recorded.

        args:
            package_name: name of the package
            version: exact version to look for, or "_any" to accept any version
        """
        return any(record.matches(package_name, version) for record in self._load_or_empty())

    def get_files(self, package_name: str) -> List[str]:
        """files of the first record with this name, or an empty list."""
        for record in self._load_or_empty():
            if record.name == package_name:
                return list(record.files)
        return []

    def get_record(self, package_name: str, version: str = ANY_VERSION) -> Optional[PackageRecord]:
        """first record matching name and version, or None."""
        for record in self._load_or_empty():
            if record.matches(package_name, version):
                return record
        return None

    def record_install(self, package_name: str, version: str, files: Iterable[str]) -> PackageRecord:
        """
        record an installed package.

        a record with the same name and version is replaced where it stands;
        otherwise the record is appended.

        raises:
            StorageError: if the ledger cannot be read or written
            LedgerParseError: if the existing ledger is corrupt (it is left untouched)
        """
        records = self.load()
        new_record = PackageRecord(name=package_name, version=version, files=list(files))

        for i, record in enumerate(records):
            if record.matches(package_name, version):
                logger.info(f"replacing existing ledger entry for {package_name}@{version}")
                records[i] = new_record
                break
        else:
            records.append(new_record)

        self.save(records)
        return new_record

    def remove_package(self, package_name: str, version: Optional[str] = None) -> PackageRecord:
        """
        remove the first record with this name (and version, if given).

        returns:
            the removed record

        raises:
            PackageNotFoundError: if no record matches; the ledger is not rewritten
            StorageError: if the ledger cannot be read or written back
            LedgerParseError: if the ledger is corrupt
        """
        records = self.load()

        for i, record in enumerate(records):
            if record.matches(package_name, version or ANY_VERSION):
                removed = records.pop(i)
                break
        else:
            raise PackageNotFoundError(package_name, version)

        self.save(records)
        return removed

    def _load_or_empty(self) -> List[PackageRecord]:
        try:
            return self.load()
        except (StorageError, LedgerParseError) as e:
            logger.warning(f"{e}; treating ledger as empty")
            return []

    def _file_mode(self) -> int:
        try:
            return stat.S_IMODE(self.ledger_file.stat().st_mode)
        except OSError:
            return 0o644
