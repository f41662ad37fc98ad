# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/wordpress_client.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Upstream WordPress REST client.

Calls ``{site_url}/wp-json/wp/v2/...`` with HTTP Basic auth built from the
connection's decrypted username and application password. Application
passwords are displayed by WordPress with spaces; those are removed before
use. Every call is bounded by ``upstream_timeout``.

Failures map onto the gateway taxonomy:
    - timeout                  -> UpstreamTimeoutError
    - non-2xx response          -> UpstreamError (status and WordPress error code in ``data``)
    - network / protocol error  -> UpstreamError
"""

# Standard
import base64
import logging
from typing import Any, Dict, Optional

# Third-Party
import httpx

# First-Party
from wpgateway.config import settings
from wpgateway.errors import UpstreamError, UpstreamTimeoutError
from wpgateway.services.auth_service import DecryptedConnection

logger = logging.getLogger(__name__)

REST_PREFIX = "/wp-json/wp/v2"


def basic_auth_header(username: str, password: str) -> str:
    """Build the ``Authorization`` value for an application password.

    Args:
        username: WordPress username. Surrounding whitespace is removed.
        password: Application password. All whitespace is removed.

    Returns:
        str: ``Basic <base64>``.

    Examples:
        >>> basic_auth_header(" admin ", "abcd efgh ijkl")
        'Basic YWRtaW46YWJjZGVmZ2hpamts'
    """
    token = f"{username.strip()}:{''.join(password.split())}"
    return "Basic " + base64.b64encode(token.encode("utf-8")).decode("ascii")


class WordPressClient:
    """Thin async client for one WordPress site.

    Args:
        connection: Connection with decrypted credentials.
        timeout: Seconds allowed per upstream call.
        transport: Optional httpx transport (tests use :class:`httpx.MockTransport`).
    """

    def __init__(self, connection: DecryptedConnection, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = connection.site_url.rstrip("/") + REST_PREFIX
        self._headers = {
            "Authorization": basic_auth_header(connection.username.get_secret_value(), connection.password.get_secret_value()),
            "Accept": "application/json",
            "User-Agent": "wpgateway",
        }
        self.timeout = timeout or settings.upstream_timeout
        self._transport = transport

    async def request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None, json: Optional[Dict[str, Any]] = None) -> Any:
        """Call a REST endpoint and return its decoded JSON body.

        Args:
            method: HTTP method.
            path: Path below ``/wp-json/wp/v2``, e.g. ``/posts/12``.
            params: Query parameters. None values are dropped.
            json: JSON body.

        Returns:
            Any: Decoded response body.

        Raises:
            UpstreamTimeoutError: The site did not answer in time.
            UpstreamError: Non-2xx status or transport failure.
        """
        query = {k: v for k, v in (params or {}).items() if v is not None}
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), headers=self._headers, transport=self._transport) as client:
                response = await client.request(method, url, params=query, json=json)
                response.raise_for_status()
                return response.json() if response.content else None
        except httpx.TimeoutException as e:
            logger.warning(f"WordPress call timed out: {method} {path}")
            raise UpstreamTimeoutError() from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            wp_code = self._error_code(e.response)
            logger.info(f"WordPress returned {status} for {method} {path} ({wp_code or 'no code'})")
            data: Dict[str, Any] = {"status": status}
            if wp_code:
                data["wp_code"] = wp_code
            raise UpstreamError(f"WordPress API error: HTTP {status}", data=data) from e
        except (httpx.RequestError, ValueError) as e:
            logger.warning(f"WordPress call failed: {method} {path}: {type(e).__name__}")
            raise UpstreamError("Could not reach the WordPress site") from e

    @staticmethod
    def _error_code(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("code") if isinstance(body, dict) else None

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, json=json)

    async def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("DELETE", path, params=params)

    async def test_connection(self) -> Dict[str, Any]:
        """Verify the credentials against ``/users/me``.

        Returns:
            Dict[str, Any]: ``id``, ``name`` and ``slug`` of the authenticated user.
        """
        me = await self.get("/users/me", params={"context": "edit"})
        return {"id": me.get("id"), "name": me.get("name"), "slug": me.get("slug")}
