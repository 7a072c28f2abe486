"""Fetch, cache and load solc snapshots."""

import logging
import os
import sys
import tempfile
from hashlib import sha256
from pathlib import Path
from typing import Callable, Optional

import httpx

from mythscan.compiler.base import CompilerSnapshot
from mythscan.compiler.releases import ReleaseIndex
from mythscan.compiler.solc import SolcBinary
from mythscan.config.settings import Settings
from mythscan.exceptions import DownloadFailed, IncompatibleSnapshot
from mythscan.models.contract import CompilerRelease


logger = logging.getLogger(__name__)

# A transient failure is retried at most once.
DOWNLOAD_RETRIES = 1

SnapshotFactory = Callable[[Path, str], CompilerSnapshot]


class CompilerProvisioner:
    """Provides a loaded compiler snapshot for a resolved solc release.

    Snapshots live in `<cache_dir>/solc/<version>/`. A cache miss downloads
    the binary, writes it to a temporary file beside its final location and
    renames it into place, so concurrent runs never see a partial file.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        snapshot_factory: Optional[SnapshotFactory] = None,
    ):
        self.settings = settings or Settings()
        self._http_client = http_client
        self._snapshot_factory = snapshot_factory or SolcBinary

    def cached_path(self, version: str) -> Path:
        """Location of the cached binary for a release."""
        name = "solc.exe" if sys.platform.startswith("win") else "solc"
        return self.settings.solc_cache_dir / version / name

    async def fetch_release_index(self) -> ReleaseIndex:
        """Download and parse the release list for the configured platform."""
        url = ReleaseIndex.index_url(self.settings.solc_binaries_url, self.settings.solc_platform)
        response = await self._download(url)
        try:
            data = response.json()
        except ValueError as e:
            raise DownloadFailed(f"solc release index at {url} is not valid JSON") from e
        return ReleaseIndex.from_list_json(
            data,
            base_url=self.settings.solc_binaries_url,
            platform=self.settings.solc_platform,
        )

    async def provision(self, release: CompilerRelease) -> CompilerSnapshot:
        """Return a verified snapshot for the release, downloading it on a cache miss.

        A cached binary that fails verification is discarded and downloaded
        again once.
        """
        path = self.cached_path(release.resolved_version)

        if path.is_file():
            logger.info("Using cached solc %s at %s", release.resolved_version, path)
            snapshot = self._snapshot_factory(path, release.resolved_version)
            try:
                await snapshot.verify()
                return snapshot
            except IncompatibleSnapshot as e:
                logger.warning("Discarding cached solc %s: %s", release.resolved_version, e)
                try:
                    path.unlink()
                except OSError as unlink_error:
                    raise DownloadFailed(f"Could not remove cached solc at {path}: {unlink_error}") from e

        await self._fetch(release, path)
        snapshot = self._snapshot_factory(path, release.resolved_version)
        await snapshot.verify()
        return snapshot

    async def _fetch(self, release: CompilerRelease, path: Path) -> None:
        logger.info("Downloading solc %s from %s", release.resolved_version, release.artifact_locator)
        response = await self._download(release.artifact_locator)
        content = response.content
        if release.checksum and sha256(content).hexdigest() != release.checksum:
            raise DownloadFailed(
                f"Checksum mismatch for solc {release.resolved_version} from {release.artifact_locator}"
            )
        self._store(path, content)

    def _store(self, path: Path, content: bytes) -> None:
        """Atomically write an executable file."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".solc-", suffix=".part")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(content)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.chmod(tmp_name, 0o755)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise DownloadFailed(f"Could not store solc snapshot at {path}: {e}") from e

    async def _download(self, url: str) -> httpx.Response:
        """GET a URL, retrying once on network faults and server errors."""
        last_error = ""
        for attempt in range(DOWNLOAD_RETRIES + 1):
            try:
                response = await self._get(url)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning("Download of %s failed (attempt %d): %s", url, attempt + 1, last_error)
                continue

            if response.status_code >= 500:
                last_error = f"HTTP {response.status_code}"
                logger.warning("Download of %s failed (attempt %d): %s", url, attempt + 1, last_error)
                continue
            if response.status_code >= 400:
                raise DownloadFailed(f"Download of {url} failed: HTTP {response.status_code}")
            return response

        raise DownloadFailed(f"Download of {url} failed: {last_error}")

    async def _get(self, url: str) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(url, follow_redirects=True)

        async with httpx.AsyncClient(
            timeout=self.settings.request_timeout,
            follow_redirects=True,
        ) as client:
            return await client.get(url)
