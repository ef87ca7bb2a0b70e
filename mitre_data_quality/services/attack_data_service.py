"""MITRE ATT&CK STIX data download with local-file fallback."""

import json
import os
from pathlib import Path
from typing import Optional, Union

import httpx
import structlog

from mitre_data_quality.core.config import Settings, get_settings

logger = structlog.get_logger()


class AttackDataService:
    """Keeps a local copy of the enterprise ATT&CK STIX bundle current."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        self.url = settings.stix_data_url
        self.local_path = Path(settings.stix_data_path)
        self.timeout = settings.stix_download_timeout_seconds
        self._transport = transport
        self.logger = logger.bind(service="AttackDataService")

    async def initialize(self) -> Optional[Path]:
        """Download a fresh bundle, falling back to the local file.

        Returns:
            Path of a usable bundle, or None when neither source is available
        """
        try:
            return await self.download()
        except (httpx.HTTPError, ValueError, OSError) as e:
            self.logger.warning("stix_download_failed", url=self.url, error=str(e))

        return self.local_file()

    async def download(self) -> Path:
        """Fetch the bundle and replace the local copy with it."""
        self.logger.info("downloading_stix_data", url=self.url)

        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            response = await client.get(self.url)
            response.raise_for_status()

        content = response.content
        # Refuse to overwrite a good local copy with a broken download
        json.loads(content)

        self._write(content)

        self.logger.info(
            "stix_data_downloaded",
            size_bytes=len(content),
            path=str(self.local_path),
        )
        return self.local_path

    def local_file(self) -> Optional[Path]:
        """The existing local bundle, if any."""
        if self.local_path.is_file():
            self.logger.info(
                "using_local_stix_data",
                path=str(self.local_path),
                size_bytes=self.local_path.stat().st_size,
            )
            return self.local_path

        self.logger.error("local_stix_data_missing", path=str(self.local_path))
        return None

    def _write(self, content: Union[bytes, str]) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")

        self.local_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.local_path.with_name(self.local_path.name + ".tmp")
        temp_path.write_bytes(content)
        os.replace(temp_path, self.local_path)
