"""Tests for CompilerProvisioner."""

import os
from hashlib import sha256

import httpx
import pytest

from mythscan.compiler.base import CompilerSnapshot
from mythscan.compiler.provisioner import CompilerProvisioner
from mythscan.compiler.releases import ReleaseIndex
from mythscan.exceptions import DownloadFailed, IncompatibleSnapshot
from mythscan.models.contract import CompilerRelease


BINARY = b"\x7fELF fake solc binary"
LOCATOR = "https://solc.test/linux-amd64/solc-linux-amd64-v0.5.17+commit.d19bba13"


class RecordingSnapshot(CompilerSnapshot):
    """Snapshot that records verification instead of executing anything."""

    def __init__(self, path, version, compatible=True):
        super().__init__(version)
        self.path = path
        self.compatible = compatible
        self.verified = False

    async def compile(self, standard_input):
        return {}

    async def verify(self):
        if not self.compatible:
            raise IncompatibleSnapshot(f"{self.path} is not solc {self.version}")
        self.verified = True

    def is_available(self):
        return self.path.is_file()


class Server:
    """Serves list.json and one binary, with optional injected failures."""

    def __init__(self, failures=None, binary=BINARY):
        self.failures = list(failures or [])
        self.binary = binary
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return httpx.Response(failure)

        if request.url.path.endswith("list.json"):
            return httpx.Response(200, json={
                "builds": [{
                    "path": "solc-linux-amd64-v0.5.17+commit.d19bba13",
                    "version": "0.5.17",
                    "sha256": "0x" + sha256(BINARY).hexdigest(),
                }],
                "releases": {"0.5.17": "solc-linux-amd64-v0.5.17+commit.d19bba13"},
                "latestRelease": "0.5.17",
            })
        return httpx.Response(200, content=self.binary)


def make_provisioner(settings, server, compatible=True):
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return CompilerProvisioner(
        settings,
        http_client=client,
        snapshot_factory=lambda path, version: RecordingSnapshot(path, version, compatible),
    )


def make_release(checksum=None):
    return CompilerRelease(
        version_constraint="^0.5.0",
        resolved_version="0.5.17",
        artifact_locator=LOCATOR,
        checksum=checksum,
    )


class TestReleaseIndex:
    """Test fetching the release list."""

    @pytest.mark.asyncio
    async def test_fetch_release_index(self, settings):
        server = Server()
        index = await make_provisioner(settings, server).fetch_release_index()

        assert str(server.requests[0].url) == "https://solc.test/linux-amd64/list.json"
        assert index.releases == {"0.5.17": "solc-linux-amd64-v0.5.17+commit.d19bba13"}
        assert index.checksum_for("0.5.17") == sha256(BINARY).hexdigest()
        assert index.url_for("0.5.17") == LOCATOR

    def test_index_url(self):
        assert ReleaseIndex.index_url("https://solc.test/", "macosx-amd64") == "https://solc.test/macosx-amd64/list.json"

    @pytest.mark.asyncio
    async def test_malformed_index(self, settings):
        def handler(request):
            return httpx.Response(200, json={"builds": []})

        provisioner = CompilerProvisioner(
            settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )
        with pytest.raises(DownloadFailed):
            await provisioner.fetch_release_index()


class TestProvision:
    """Test snapshot caching and download."""

    @pytest.mark.asyncio
    async def test_cache_miss_downloads_and_stores(self, settings):
        server = Server()
        provisioner = make_provisioner(settings, server)

        snapshot = await provisioner.provision(make_release(sha256(BINARY).hexdigest()))

        path = provisioner.cached_path("0.5.17")
        assert path == settings.solc_cache_dir / "0.5.17" / path.name
        assert path.read_bytes() == BINARY
        assert os.access(path, os.X_OK)
        assert snapshot.verified
        assert snapshot.version == "0.5.17"
        assert [p.name for p in path.parent.iterdir()] == [path.name]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network(self, settings):
        server = Server()
        provisioner = make_provisioner(settings, server)
        path = provisioner.cached_path("0.5.17")
        path.parent.mkdir(parents=True)
        path.write_bytes(b"cached")

        snapshot = await provisioner.provision(make_release())

        assert server.requests == []
        assert snapshot.path == path
        assert path.read_bytes() == b"cached"

    @pytest.mark.asyncio
    async def test_transient_failure_retried_once(self, settings):
        server = Server(failures=[503])
        provisioner = make_provisioner(settings, server)

        await provisioner.provision(make_release())

        assert len(server.requests) == 2
        assert provisioner.cached_path("0.5.17").read_bytes() == BINARY

    @pytest.mark.asyncio
    async def test_network_error_retried_once(self, settings):
        server = Server(failures=[httpx.ConnectError("connection refused")])

        await make_provisioner(settings, server).provision(make_release())

        assert len(server.requests) == 2

    @pytest.mark.asyncio
    async def test_repeated_transient_failure_gives_up(self, settings):
        server = Server(failures=[500, httpx.ReadTimeout("timed out"), 500])
        provisioner = make_provisioner(settings, server)

        with pytest.raises(DownloadFailed):
            await provisioner.provision(make_release())

        assert len(server.requests) == 2
        assert not provisioner.cached_path("0.5.17").exists()

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self, settings):
        server = Server(failures=[404])

        with pytest.raises(DownloadFailed, match="404"):
            await make_provisioner(settings, server).provision(make_release())

        assert len(server.requests) == 1

    @pytest.mark.asyncio
    async def test_checksum_mismatch(self, settings):
        server = Server(binary=b"tampered")
        provisioner = make_provisioner(settings, server)

        with pytest.raises(DownloadFailed, match="Checksum"):
            await provisioner.provision(make_release(sha256(BINARY).hexdigest()))

        assert not provisioner.cached_path("0.5.17").exists()

    @pytest.mark.asyncio
    async def test_incompatible_snapshot(self, settings):
        provisioner = make_provisioner(settings, Server(), compatible=False)

        with pytest.raises(IncompatibleSnapshot):
            await provisioner.provision(make_release())

    @pytest.mark.asyncio
    async def test_broken_cached_binary_downloaded_again(self, settings):
        server = Server()
        provisioner = CompilerProvisioner(
            settings,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(server)),
            snapshot_factory=lambda path, version: RecordingSnapshot(
                path, version, compatible=path.read_bytes() == BINARY
            ),
        )
        path = provisioner.cached_path("0.5.17")
        path.parent.mkdir(parents=True)
        path.write_bytes(b"truncated")

        snapshot = await provisioner.provision(make_release(sha256(BINARY).hexdigest()))

        assert snapshot.verified
        assert path.read_bytes() == BINARY
        assert len(server.requests) == 1

    @pytest.mark.asyncio
    async def test_redownloaded_binary_still_incompatible(self, settings):
        server = Server()
        provisioner = make_provisioner(settings, server, compatible=False)
        path = provisioner.cached_path("0.5.17")
        path.parent.mkdir(parents=True)
        path.write_bytes(b"truncated")

        with pytest.raises(IncompatibleSnapshot):
            await provisioner.provision(make_release())

        assert len(server.requests) == 1
