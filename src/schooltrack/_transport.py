"""HTTP transport for the hosted REST tables."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from schooltrack._constants import USER_AGENT
from schooltrack.config import TrackerConfig
from schooltrack.exceptions import TrackerTransportError
from schooltrack.session import Session

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Endpoint modules only need ``request``; tests substitute a recording
    fake for :class:`RestTransport`.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        ...


class RestTransport:
    """aiohttp transport that adds API key and bearer headers and decodes JSON."""

    def __init__(
        self,
        config: TrackerConfig,
        http_session: aiohttp.ClientSession,
        session: Session | None = None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=config.http_timeout)

    def set_session(self, session: Session | None) -> None:
        self._session = session

    def _headers(self, prefer: str | None) -> dict[str, str]:
        token = self._session.access_token if self._session is not None else None
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
            "apikey": self._config.api_key,
            "authorization": f"Bearer {token or self._config.api_key}",
        }
        if prefer:
            headers["prefer"] = prefer
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Send one REST request and return the decoded JSON body.

        Returns ``None`` for empty bodies (e.g. ``Prefer: return=minimal``).
        """
        url = f"{self._config.rest_url}{path}"
        body = json.dumps(payload, separators=(",", ":")) if payload is not None else None

        _logger.debug("%s %s params=%s", method, url, dict(params or {}))

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params or {}),
                data=body,
                headers=self._headers(prefer),
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if resp.status >= 300:
                    raise TrackerTransportError(
                        f"HTTP {resp.status} from {path}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=path,
                    )
        except TrackerTransportError:
            raise
        except TimeoutError as exc:
            raise TrackerTransportError(f"Request to {path} timed out", endpoint=path) from exc
        except aiohttp.ClientError as exc:
            raise TrackerTransportError(
                f"Request to {path} failed: {exc}",
                endpoint=path,
            ) from exc

        if not text.strip():
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TrackerTransportError(
                f"Invalid JSON from {path}: {text[:200]}",
                endpoint=path,
            ) from exc
