"""Concurrent download of remote media into a job workspace."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Sequence

import httpx

from assembler.config import get_settings
from assembler.exceptions import AcquisitionError

logger = logging.getLogger(__name__)

AssetType = Literal["clip", "narration", "music", "captions"]


@dataclass(frozen=True)
class DownloadRequest:
    """A remote file and where it must land."""

    url: str
    dest_path: Path
    asset_type: AssetType
    index: int | None = None


@dataclass(frozen=True)
class Asset:
    """A downloaded file. Written once, read-only afterwards."""

    asset_type: AssetType
    path: Path
    index: int | None = None


class AssetDownloader:
    """
    Fetches a set of URLs concurrently with httpx.

    Redirects are followed up to ``max_redirects``. Any failure (network
    error, too many redirects, final status other than 200) fails the whole
    batch and cancels the downloads still in flight.
    """

    def __init__(
        self,
        timeout_seconds: float | None = None,
        max_redirects: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.timeout_seconds = timeout_seconds or settings.download_timeout_seconds
        self.max_redirects = max_redirects if max_redirects is not None else settings.download_max_redirects
        self.chunk_size = settings.download_chunk_size
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout_seconds,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            transport=self._transport,
        )

    async def download(self, client: httpx.AsyncClient, request: DownloadRequest) -> Asset:
        dest = request.dest_path
        dest.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with client.stream("GET", request.url) as response:
                if response.status_code != 200:
                    raise AcquisitionError(
                        f"Download failed: HTTP {response.status_code} for {request.url}",
                        url=request.url,
                    )
                with open(dest, "wb") as f:
                    async for chunk in response.aiter_bytes(self.chunk_size):
                        f.write(chunk)
        except httpx.TooManyRedirects:
            logger.warning(f"[DOWNLOAD] Too many redirects: {request.url}")
            dest.unlink(missing_ok=True)
            raise AcquisitionError(
                f"Download failed: more than {self.max_redirects} redirects for {request.url}",
                url=request.url,
            )
        except httpx.HTTPError as e:
            logger.warning(f"[DOWNLOAD] {request.asset_type} failed: {request.url}: {e}")
            dest.unlink(missing_ok=True)
            raise AcquisitionError(f"Download failed: {e} for {request.url}", url=request.url)
        except OSError as e:
            dest.unlink(missing_ok=True)
            raise AcquisitionError(f"Download failed: {e} for {request.url}", url=request.url)
        except asyncio.CancelledError:
            dest.unlink(missing_ok=True)
            raise

        logger.debug(f"[DOWNLOAD] {request.asset_type} -> {dest}")
        return Asset(asset_type=request.asset_type, path=dest, index=request.index)

    async def download_all(self, requests: Sequence[DownloadRequest]) -> list[Asset]:
        """Download everything concurrently; results follow the input order."""
        async with self._client() as client:
            tasks = [asyncio.create_task(self.download(client, r)) for r in requests]
            try:
                return list(await asyncio.gather(*tasks))
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
