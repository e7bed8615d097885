"""Request/response exchange with the Shelly cloud device status API.

One ``fetch`` performs exactly one POST. The request body is streamed
from a call-local buffer and the response body is accumulated chunk by
chunk up to ``max_response_bytes``.
"""

from __future__ import annotations

import io
import json
import logging
import time
from typing import Any, Dict, Optional, Sequence
from urllib.parse import quote_plus

import requests

from ..common.config import Configuration
from ..common.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_RESPONSE_BYTES = 4 * 1024 * 1024
DEFAULT_USER_AGENT = "shellyd-agent"

# Status components requested for every device.
STATUS_FIELDS = ["ts", "temperature:0", "humidity:0", "devicepower:0", "sys"]

_READ_CHUNK_SIZE = 8192


def build_request_body(ids: Sequence[str]) -> Dict[str, Any]:
    """Body of the device status query for ``ids``, order preserved."""
    return {
        "ids": list(ids),
        "select": ["status"],
        "pick": {
            "status": list(STATUS_FIELDS),
            "settings": [],
        },
    }


class CloudClient:
    """Client for the Shelly cloud device status endpoint."""

    def __init__(
        self,
        url: str,
        endpoint: str,
        key: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        self._request_url = url + endpoint
        self._key = key
        self._timeout = timeout
        self._max_response_bytes = max_response_bytes
        self._user_agent = user_agent
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Configuration, session: Optional[requests.Session] = None) -> "CloudClient":
        return cls(
            url=config.string_value("cloud.url"),
            endpoint=config.string_value("cloud.endpoint"),
            key=config.string_value("cloud.key"),
            timeout=config.float_value("poller.timeout", DEFAULT_TIMEOUT),
            max_response_bytes=config.int_value("poller.max_response_bytes", DEFAULT_MAX_RESPONSE_BYTES),
            user_agent=(
                config.string_value("poller.user_agent")
                if config.has("poller.user_agent") else DEFAULT_USER_AGENT
            ),
            session=session,
        )

    @property
    def request_url(self) -> str:
        return self._request_url

    def fetch(self, ids: Sequence[str]) -> bytes:
        """POST the status query for ``ids`` and return the raw response body.

        Raises:
            TransportError: connection failure, timeout, non-2xx status or
                a response body larger than ``max_response_bytes``.
        """
        body = json.dumps(build_request_body(ids)).encode("utf-8")
        logger.debug("[CLOUD] request to %s: %s", self._request_url, body)

        deadline = time.monotonic() + self._timeout
        try:
            # A file object is sent by the transport in blocks, with Content-Length set.
            response = self._session.post(
                self._request_url,
                params={"auth_key": self._key},
                data=io.BytesIO(body),
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": self._user_agent,
                },
                timeout=self._timeout,
                stream=True,
            )
        except requests.RequestException as e:
            raise TransportError(f"request to {self._request_url} failed: {self._describe(e)}") from e

        try:
            if not 200 <= response.status_code < 300:
                raise TransportError(
                    f"request to {self._request_url} failed: HTTP {response.status_code}"
                )
            payload = self._read_body(response, deadline)
        except requests.RequestException as e:
            raise TransportError(f"reading response from {self._request_url} failed: {self._describe(e)}") from e
        finally:
            response.close()

        logger.debug("[CLOUD] received %d bytes", len(payload))
        return payload

    def _describe(self, error: Exception) -> str:
        # requests puts the full URL, auth_key included, into its messages
        text = str(error)
        if self._key:
            for secret in (self._key, quote_plus(self._key)):
                text = text.replace(secret, "***")
        return f"{type(error).__name__}: {text}"

    def _read_body(self, response: requests.Response, deadline: float) -> bytes:
        buffer = bytearray()
        for chunk in response.iter_content(chunk_size=_READ_CHUNK_SIZE):
            if not chunk:
                continue
            buffer.extend(chunk)
            if len(buffer) > self._max_response_bytes:
                raise TransportError(
                    f"response too large: more than {self._max_response_bytes} bytes"
                )
            if time.monotonic() > deadline:
                raise TransportError(f"timeout after {self._timeout:.0f}s reading response")
        return bytes(buffer)

    def close(self) -> None:
        self._session.close()
