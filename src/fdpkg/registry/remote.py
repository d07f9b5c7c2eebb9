import logging
from http.cookiejar import LoadError, MozillaCookieJar
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import httpx

from .client import ProgressCallback, RegistryClient
from .session import Session
from ..domain.errors import HttpStatusError, RegistryConnectionError, StorageError
from ..domain.models import PackageInfo

logger = logging.getLogger(__name__)


class HttpRegistry(RegistryClient):
    """registry client speaking the fdrepo http api."""

    def __init__(
        self,
        base_url: str,
        cookie_file: Optional[Path] = None,
        session: Optional[Session] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        """
        args:
            base_url: registry root, e.g. https://fdrepo.natesworks.com
            cookie_file: where session cookies are persisted between runs
            session: session to authenticate; a fresh one is created if omitted
            transport: optional httpx transport (used by tests)
            timeout: request timeout in seconds; httpx default if omitted
        """
        self.base_url = base_url.rstrip("/")
        self.cookie_file = Path(cookie_file) if cookie_file is not None else None
        self.session = session or Session()
        self.cookies = self._load_cookies()

        options = {}
        if timeout is not None:
            options["timeout"] = timeout
        self.client = httpx.Client(
            cookies=self.cookies,
            follow_redirects=True,
            transport=transport,
            **options,
        )

    def __enter__(self) -> "HttpRegistry":
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        """persist cookies and release the connection pool."""
        try:
            self._save_cookies()
        finally:
            self.client.close()

    def login(self, username: str, password: str) -> str:
        """
        authenticate against the registry.

        the response body of a successful login is the token, taken verbatim.

        raises:
            RegistryConnectionError: if the registry cannot be reached
            HttpStatusError: if the registry rejects the credentials
        """
        url = f"{self.base_url}/login"
        self.session.clear()
        try:
            response = self.client.post(url, json={"username": username, "password": password})
        except httpx.RequestError as e:
            raise RegistryConnectionError(f"Could not reach {url}: {e}") from e

        self._save_cookies()
        if response.status_code != 200:
            raise HttpStatusError(response.status_code, url, f"Login failed with HTTP {response.status_code}")

        self.session.token = response.text
        logger.debug(f"logged in to {self.base_url} as {username}")
        return self.session.token

    def fetch_metadata(self, package_name: str, version: str) -> PackageInfo:
        """
        get the registry record of one package version.

        raises:
            RegistryConnectionError, HttpStatusError: on network failure
            ParseError: if the body is not a complete package record
        """
        url = self._package_url(package_name, f"{quote(version, safe='')}.json")
        try:
            response = self.client.get(url, headers=self._headers())
        except httpx.RequestError as e:
            raise RegistryConnectionError(f"Could not reach {url}: {e}") from e

        if not response.is_success:
            raise HttpStatusError(response.status_code, url)
        return PackageInfo.from_json(response.content)

    def fetch_file(
        self,
        package_name: str,
        version: str,
        file: str,
        destination: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """
        stream one package file to disk.

        the destination is opened before anything is requested. on a network
        failure the bytes written so far are left in place.

        args:
            package_name: name of the package
            version: version to download
            file: file path relative to the package
            destination: where to write the file
            progress: optional callback receiving (downloaded, total) per chunk

        returns:
            the destination path

        raises:
            StorageError: if the destination cannot be opened or written
            RegistryConnectionError, HttpStatusError: on network failure
        """
        destination = Path(destination)
        try:
            out = open(destination, "wb")
        except OSError as e:
            raise StorageError(f"Failed to open file: {destination} ({e})") from e

        url = self._package_url(package_name, quote(version, safe=""), quote(file))
        with out:
            try:
                with self.client.stream("GET", url, headers=self._headers()) as response:
                    if not response.is_success:
                        raise HttpStatusError(response.status_code, url)

                    total = _content_length(response)
                    for chunk in response.iter_bytes():
                        out.write(chunk)
                        if progress is not None:
                            progress(response.num_bytes_downloaded, total)
            except httpx.RequestError as e:
                raise RegistryConnectionError(f"Download of {url} failed: {e}") from e
            except OSError as e:
                raise StorageError(f"Failed to write file: {destination} ({e})") from e

        logger.debug(f"downloaded {url} to {destination}")
        return destination

    def _package_url(self, package_name: str, *parts: str) -> str:
        return "/".join([self.base_url, "packages", quote(package_name, safe=""), *parts])

    def _headers(self) -> dict:
        if self.session.is_authenticated:
            return {"Authorization": f"Bearer {self.session.token}"}
        return {}

    def _load_cookies(self) -> MozillaCookieJar:
        if self.cookie_file is None:
            return MozillaCookieJar()

        jar = MozillaCookieJar(str(self.cookie_file))
        if self.cookie_file.exists():
            try:
                jar.load(ignore_discard=True, ignore_expires=True)
            except (LoadError, OSError) as e:
                logger.warning(f"ignoring unreadable cookie file {self.cookie_file}: {e}")
        return jar

    def _save_cookies(self):
        if self.cookie_file is None:
            return
        try:
            self.cookie_file.parent.mkdir(parents=True, exist_ok=True)
            self.cookies.save(ignore_discard=True, ignore_expires=True)
        except OSError as e:
            logger.warning(f"could not save cookies to {self.cookie_file}: {e}")


def _content_length(response: httpx.Response) -> int:
    try:
        return max(int(response.headers.get("content-length", 0)), 0)
    except ValueError:
        return 0
