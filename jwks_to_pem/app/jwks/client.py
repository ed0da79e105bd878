"""
JWKS client for retrieving a key set over HTTP.
"""

from typing import Any, Iterator, List, Optional

import httpx

from shared.errors import FetchError
from shared.logging import get_logger
from shared.retry import RetryConfig, retry_async
from ..keys.jwk import JWK

logger = get_logger("jwks_to_pem.jwks")


class JWKS:
    """An ordered set of JSON Web Keys."""

    def __init__(self, keys: Optional[List[JWK]] = None):
        self.keys: List[JWK] = list(keys or [])

    def __iter__(self) -> Iterator[JWK]:
        return iter(self.keys)

    def __len__(self) -> int:
        return len(self.keys)

    def key_ids(self) -> List[str]:
        return [key.key_id for key in self.keys]

    @classmethod
    def from_dict(cls, data: Any, url: str = "") -> "JWKS":
        """Build a key set from a decoded JWKS document."""
        if not isinstance(data, dict):
            raise FetchError(url, "JWKS document is not a JSON object")

        raw_keys = data.get("keys")
        if not isinstance(raw_keys, list):
            raise FetchError(url, "JWKS document has no keys array")

        keys = []
        for index, raw in enumerate(raw_keys):
            if not isinstance(raw, dict):
                logger.warning("ignoring malformed key entry", index=index)
                continue
            keys.append(JWK(raw))

        return cls(keys)


class JWKSClient:
    """Client for fetching a JWKS document."""

    def __init__(self,
                 jwks_url: str,
                 timeout: float = 5.0,
                 attempts: int = 1,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.jwks_url = jwks_url
        self.timeout = timeout
        self.retry_config = RetryConfig(max_attempts=attempts, base_delay=1.0, max_delay=30.0)
        self.transport = transport

    async def _fetch_once(self) -> JWKS:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport
            ) as client:
                response = await client.get(
                    self.jwks_url,
                    headers={"Accept": "application/json"}
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                self.jwks_url,
                f"bad response code {e.response.status_code}",
                details={"status_code": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(self.jwks_url, f"error during request ({e.__class__.__name__})") from e

        try:
            data = response.json()
        except ValueError as e:
            raise FetchError(self.jwks_url, "response was not valid JSON") from e

        return JWKS.from_dict(data, self.jwks_url)

    async def get_jwks(self) -> JWKS:
        """Fetch and parse the key set."""
        jwks = await retry_async(
            self._fetch_once,
            exceptions=(FetchError,),
            config=self.retry_config,
            name="fetch_jwks"
        )

        logger.info("JWKS fetched", url=self.jwks_url, keys_count=len(jwks))
        logger.debug("JWKS key ids", kids=jwks.key_ids())

        return jwks


async def fetch_jwks(url: str,
                     timeout: float = 5.0,
                     *,
                     attempts: int = 1,
                     transport: Optional[httpx.AsyncBaseTransport] = None) -> JWKS:
    """Fetch the JWKS at ``url``."""
    client = JWKSClient(url, timeout=timeout, attempts=attempts, transport=transport)
    return await client.get_jwks()
