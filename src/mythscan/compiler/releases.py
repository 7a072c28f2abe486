"""solc release index (`<binaries>/<platform>/list.json`)."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from mythscan.exceptions import DownloadFailed


class ReleaseIndex(BaseModel):
    """Known solc releases for one platform."""

    base_url: str
    platform: str
    releases: Dict[str, str] = Field(
        default_factory=dict,
        description="Release version -> binary file name",
    )
    checksums: Dict[str, str] = Field(
        default_factory=dict,
        description="Binary file name -> sha256 hex digest",
    )

    @classmethod
    def from_list_json(cls, data: Any, base_url: str, platform: str) -> "ReleaseIndex":
        """Parse the `list.json` document published next to the binaries."""
        if not isinstance(data, dict) or not isinstance(data.get("releases"), dict):
            raise DownloadFailed("solc release index is malformed: missing 'releases' map")
        checksums = {}
        for build in data.get("builds") or []:
            if isinstance(build, dict) and build.get("path") and build.get("sha256"):
                checksums[build["path"]] = build["sha256"].lower().removeprefix("0x")

        return cls(
            base_url=base_url.rstrip("/"),
            platform=platform,
            releases={str(k): str(v) for k, v in data["releases"].items()},
            checksums=checksums,
        )

    @staticmethod
    def index_url(base_url: str, platform: str) -> str:
        """Location of the release list for a platform."""
        return f"{base_url.rstrip('/')}/{platform}/list.json"

    def url_for(self, version: str) -> str:
        """Download URL of the binary for a release."""
        return f"{self.base_url}/{self.platform}/{self.releases[version]}"

    def checksum_for(self, version: str) -> Optional[str]:
        """Published sha256 of a release binary, if the index lists one."""
        return self.checksums.get(self.releases.get(version, ""))
