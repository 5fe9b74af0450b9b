"""
Artifact Transfer - Single Responsibility: move artifact bytes to object storage.

Two phases: ask the broker for a presigned URL, then PUT the bytes straight
to storage. No retries are done here.
"""
import asyncio
import inspect
import logging
import time
from typing import AsyncIterator, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..errors import APIError, AuthorizationDeniedError, TransferFailedError
from ..models import ArtifactFile, AuthorizationGrant, UploadConfig
from ..protocols import IAPIClient, ByteProgressCallback

logger = logging.getLogger(__name__)

UPLOAD_URL_ENDPOINT = "/api/upload-url"


def build_object_name(organization_id: str, version: str, extension: str, now_ms: Optional[int] = None) -> str:
    """Object name unique per organization, version and instant."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{organization_id}_{version}_{now_ms}.{extension.lstrip('.')}"


def public_url_for(grant_url: str, public_base_url: Optional[str] = None) -> str:
    """
    Derive the retrieval URL from a presigned URL.

    Drops the signature query string. With ``public_base_url`` the storage
    host is swapped for the public-facing one, keeping the object path.
    """
    parts = urlsplit(grant_url)
    scheme, netloc, path = parts.scheme, parts.netloc, parts.path
    if public_base_url:
        base = urlsplit(public_base_url.rstrip("/"))
        scheme, netloc, path = base.scheme, base.netloc, base.path + parts.path
    return urlunsplit((scheme, netloc, path, "", ""))


async def _notify(callback: Optional[ByteProgressCallback], sent: int, total: int) -> None:
    if callback is None:
        return
    result = callback(sent, total)
    if inspect.isawaitable(result):
        await result


class PresignedUrlTransfer:
    """
    Transfer via a presigned-URL broker.

    Implements IArtifactTransfer protocol.

    Usage:
        async with HTTPAPIClient(config.broker_url) as broker:
            async with PresignedUrlTransfer(broker, config) as transfer:
                grant = await transfer.request_authorization(name, content_type)
                url = await transfer.transfer(artifact, grant, on_progress)
    """

    def __init__(
        self,
        broker: IAPIClient,
        config: Optional[UploadConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize transfer client.

        Args:
            broker: HTTP client pointed at the upload broker
            config: Upload configuration
            http_client: Client used for the storage PUT (created on enter if omitted)
        """
        self._broker = broker
        self._config = config or UploadConfig()
        self._http = http_client
        self._owns_http = http_client is None

    async def __aenter__(self):
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._config.timeout)
        return self

    async def __aexit__(self, *args):
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    async def request_authorization(self, proposed_name: str, content_type: str) -> AuthorizationGrant:
        """
        Ask the broker for a write credential.

        Raises:
            AuthorizationDeniedError: broker refused or was unreachable
        """
        try:
            response = await self._broker.post(
                UPLOAD_URL_ENDPOINT,
                json={"fileName": proposed_name, "fileType": content_type},
            )
            presigned_url = response.json().get("presignedUrl")
        except APIError as exc:
            raise AuthorizationDeniedError(f"Failed to get upload URL: {exc.detail or exc.status_code}") from exc
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            raise AuthorizationDeniedError(f"Failed to get upload URL: {exc}") from exc

        if not presigned_url:
            raise AuthorizationDeniedError("Failed to get upload URL: broker returned no URL")

        logger.debug("Authorization granted for %s", proposed_name)
        return AuthorizationGrant(url=presigned_url, object_name=proposed_name, content_type=content_type)

    async def _iter_chunks(
        self,
        artifact: ArtifactFile,
        on_progress: Optional[ByteProgressCallback],
    ) -> AsyncIterator[bytes]:
        total = artifact.size
        sent = 0
        with open(artifact.path, "rb") as handle:
            while True:
                chunk = await asyncio.to_thread(handle.read, self._config.chunk_size)
                if not chunk:
                    break
                yield chunk
                sent += len(chunk)
                await _notify(on_progress, sent, total)

    async def transfer(
        self,
        artifact: ArtifactFile,
        grant: AuthorizationGrant,
        on_progress: Optional[ByteProgressCallback] = None,
    ) -> str:
        """
        Stream the artifact to the granted URL.

        Returns:
            Public retrieval URL

        Raises:
            TransferFailedError: non-2xx response, network or file error
        """
        if self._http is None:
            raise RuntimeError("PresignedUrlTransfer not initialized. Use 'async with' context.")

        headers = {
            "Content-Type": grant.content_type,
            "Content-Length": str(artifact.size),
        }
        try:
            response = await self._http.put(
                grant.url,
                content=self._iter_chunks(artifact, on_progress),
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise TransferFailedError(f"Upload failed due to network error: {exc}") from exc
        except OSError as exc:
            raise TransferFailedError(f"Could not read {artifact.name}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            reason = response.reason_phrase or str(response.status_code)
            raise TransferFailedError(f"Upload failed: {reason}", status_code=response.status_code)

        url = public_url_for(grant.url, self._config.public_base_url)
        logger.info("Uploaded %s (%d bytes) to %s", artifact.name, artifact.size, url)
        return url
