import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qsl

import httpx

from social_ally.core.exceptions import TransportError

logger = logging.getLogger(__name__)


@dataclass
class TransportResponse:
    status_code: int
    body: Any
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def parse_body(response: httpx.Response) -> Any:
    """Parse a provider response body.

    JSON first; some token endpoints answer form-encoded unless asked
    otherwise, so fall back to a query-string parse, then to raw text.
    """
    text = response.text
    if not text:
        return {}
    try:
        return response.json()
    except ValueError:
        pass
    content_type = response.headers.get("content-type", "")
    if "x-www-form-urlencoded" in content_type or ("=" in text and " " not in text.strip()):
        return dict(parse_qsl(text, keep_blank_values=True))
    return text


class HttpTransport:
    """Thin async request/response client used for token and profile calls.

    No retries and no pooling across calls: timeout and cancellation are
    configured here by the caller.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._client = client
        self._transport = transport

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> TransportResponse:
        method = method.upper()
        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, params=params, data=data, json=json, headers=headers
                )
            else:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self._transport
                ) as client:
                    response = await client.request(
                        method, url, params=params, data=data, json=json, headers=headers
                    )
        except httpx.TimeoutException:
            logger.error(f"{method} {_safe_url(url)} timed out after {self.timeout}s")
            raise TransportError("OAuth provider timeout", details={"url": _safe_url(url)})
        except httpx.HTTPError as e:
            logger.error(f"{method} {_safe_url(url)} failed: {e.__class__.__name__}")
            raise TransportError(
                "OAuth provider unreachable",
                details={"url": _safe_url(url), "reason": e.__class__.__name__},
            )

        logger.debug(f"{method} {_safe_url(url)} -> {response.status_code}")
        return TransportResponse(
            status_code=response.status_code,
            body=parse_body(response),
            text=response.text,
        )

    async def get(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> TransportResponse:
        return await self.request("GET", url, params=params, headers=headers)

    async def post(
        self,
        url: str,
        data: Optional[Mapping[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> TransportResponse:
        return await self.request("POST", url, data=data, json=json, headers=headers)


def _safe_url(url: str) -> str:
    # Query strings may carry access tokens or secrets
    return url.split("?", 1)[0]


def bearer(access_token: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
    if extra:
        headers.update(extra)
    return headers
