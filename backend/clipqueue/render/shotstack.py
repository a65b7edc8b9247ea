"""
client for the external rendering service (shotstack edit api)

start_render() submits an edit and returns the render reference, get_status()
is the pull side used by the render status poller. the push side arrives on
/api/webhooks/render.
"""
import logging
from typing import Optional

import httpx
from pydantic import BaseModel

from clipqueue.core.config import settings
from clipqueue.core.errors import RenderServiceError, retry_with_backoff
from clipqueue.render.timeline import RenderRequest, build_edit

logger = logging.getLogger(__name__)


class RenderStatusResponse(BaseModel):
    render_reference: str
    status: str  # queued, fetching, rendering, saving, done, failed
    progress: Optional[float] = None
    url: Optional[str] = None
    error: Optional[str] = None


class ShotstackClient:

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.RENDER_API_URL).rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            headers={"x-api-key": api_key if api_key is not None else settings.RENDER_API_KEY},
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    def close(self):
        self.client.close()

    def start_render(self, request: RenderRequest) -> str:
        """submit the edit, returns the render reference"""
        edit = build_edit(request)
        try:
            response = self.client.post("/render", json=edit)
        except httpx.HTTPError as e:
            raise RenderServiceError(f"render request failed: {e}") from e

        if response.status_code >= 400:
            raise RenderServiceError(
                f"rendering service error: {response.status_code} - {response.text[:500]}"
            )

        try:
            render_reference = response.json()["response"]["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise RenderServiceError(f"unexpected render response: {response.text[:500]}") from e

        logger.info(f"render started: {render_reference} ({request.platform}, {request.length:.1f}s)")
        return render_reference

    @retry_with_backoff(max_retries=2, initial_delay=0.5, retry_on=(httpx.TransportError,))
    def _fetch_status(self, render_reference: str) -> httpx.Response:
        return self.client.get(f"/render/{render_reference}")

    def get_status(self, render_reference: str) -> RenderStatusResponse:
        try:
            response = self._fetch_status(render_reference)
        except httpx.HTTPError as e:
            raise RenderServiceError(f"render status check failed: {e}") from e

        if response.status_code >= 400:
            raise RenderServiceError(f"render status check failed: {response.status_code}")

        try:
            render = response.json()["response"]
        except (ValueError, KeyError, TypeError) as e:
            raise RenderServiceError(f"unexpected status response: {response.text[:500]}") from e

        return RenderStatusResponse(
            render_reference=render.get("id") or render_reference,
            status=render.get("status", ""),
            progress=(render.get("data") or {}).get("progress"),
            url=render.get("url"),
            error=render.get("error"),
        )
