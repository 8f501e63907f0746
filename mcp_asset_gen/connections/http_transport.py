import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import aiofiles
import httpx
import structlog

from mcp_asset_gen.core.config import settings
from mcp_asset_gen.core.exceptions import StorageError, TransportError

logger = structlog.get_logger()


class HttpTransport:
    """
    Thin JSON-over-HTTP capability shared by every provider.
    A fresh client is opened per call so concurrent tool calls share nothing.
    """

    def __init__(
        self,
        timeout: Optional[float] = settings.HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        # Injected in tests (httpx.MockTransport)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport, follow_redirects=True)

    async def request_json(
        self,
        url: str,
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Any] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[List[Tuple[str, Tuple[str, bytes, str]]]] = None,
    ) -> Any:
        """
        Sends the request and returns the parsed JSON body.
        Error statuses that still carry JSON are returned as-is: providers put
        their error message in the payload and the caller decides what is fatal.
        """
        async with self._client() as client:
            try:
                if files is not None:
                    resp = await client.request(method, url, headers=headers, data=data, files=files)
                elif body is not None and method.upper() != "GET":
                    resp = await client.request(method, url, headers=headers, json=body)
                else:
                    resp = await client.request(method, url, headers=headers)
            except httpx.HTTPError as e:
                logger.error("http_request_failed", url=url, method=method, error=str(e))
                raise TransportError(f"HTTP request failed: {e}", original_error=e)

        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(
                f"HTTP request failed: {resp.status_code} response from {url} is not JSON: {resp.text[:200]}",
                original_error=e,
            )

    async def download(self, url: str, output_path: str) -> str:
        """
        Streams a remote file to output_path, creating parent directories.
        """
        path = Path(output_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory for {output_path}: {e}", original_error=e)

        logger.info("downloading_file", url=url, output_path=output_path)
        async with self._client() as client:
            try:
                async with client.stream("GET", url) as resp:
                    resp.raise_for_status()
                    async with aiofiles.open(path, "wb") as f:
                        async for chunk in resp.aiter_bytes():
                            await f.write(chunk)
            except httpx.HTTPError as e:
                raise TransportError(f"Failed to download {url} to {output_path}: {e}", original_error=e)
            except OSError as e:
                raise StorageError(f"Failed to write {output_path}: {e}", original_error=e)

        return output_path


def provider_error(payload: Any) -> Optional[str]:
    """
    Returns the provider's error message when the payload is an error object
    ({"error": ...} or {"detail": ...}), else None.
    """
    if not isinstance(payload, dict):
        return None
    error, detail = payload.get("error"), payload.get("detail")
    if not error and not detail:
        return None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return json.dumps(detail or error)
