from typing import Optional


class FdpkgError(Exception):
    """base class for exceptions in fdpkg."""
    pass


class RegistryConnectionError(FdpkgError):
    """raised when the registry cannot be reached (dns, tcp, tls, timeout)."""
    pass


class HttpStatusError(FdpkgError):
    """raised when the registry answers with an unexpected status code."""
    def __init__(self, status_code: int, url: str, message: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message or f"HTTP {status_code} from {url}")


class ParseError(FdpkgError):
    """raised when a document does not match its expected shape."""
    pass


class LedgerParseError(ParseError):
    """raised when the installed-package ledger is corrupt."""
    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Ledger at {path} is corrupt: {reason}")


class StorageError(FdpkgError):
    """raised when a local file cannot be opened, read or written."""
    pass


class PackageNotFoundError(FdpkgError):
    """raised when a package is not recorded in the ledger."""
    def __init__(self, package_name: str, version: Optional[str] = None):
        self.package_name = package_name
        self.version = version
        label = f"{package_name}@{version}" if version else package_name
        super().__init__(f"Package not found: {label}")


class AlreadyInstalledError(FdpkgError):
    """raised when installing a package version that is already recorded."""
    def __init__(self, package_name: str, version: str):
        self.package_name = package_name
        self.version = version
        super().__init__(f"Package '{package_name}' {version} is already installed")
