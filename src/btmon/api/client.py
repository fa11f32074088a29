"""Cookie-authenticated HTTP session for a single Broadcast Tools device."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any

import httpx

from btmon.api.errors import (
    AlreadyAuthenticatedError,
    AuthError,
    ConfigError,
    NotAuthenticatedError,
    TransportError,
)
from btmon.models.config import DEFAULT_TIMEOUT

if TYPE_CHECKING:
    from btmon.models.config import Endpoint

logger = logging.getLogger(__name__)

LOGIN_PATH = "/cgi-bin/postauth.cgi"
LOGOUT_PATH = "/cgi-bin/postlogout.cgi"
MONITOR_PATH = "/cgi-bin/getexchanger_monitor.cgi"

ACCESS_VAL_RANGE = 1000


def parse_base_url(url: str) -> httpx.URL:
    """Validate *url* and return its scheme/host/port root.

    Raises:
        ConfigError: If *url* is not an absolute ``http``/``https`` URL.
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ConfigError(f"Invalid device URL {url!r}: {exc}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ConfigError(f"Invalid device URL {url!r}: expected http(s)://host[:port]")
    return parsed.copy_with(path="/", query=None, fragment=None)


def _first_cookie(response: httpx.Response) -> tuple[str, str] | None:
    """Return ``(name, value)`` of the first ``Set-Cookie`` header, in response order."""
    for header in response.headers.get_list("set-cookie"):
        name, sep, value = header.split(";", 1)[0].partition("=")
        if sep and name.strip():
            return name.strip(), value.strip()
    return None


class DeviceSession:
    """Owns one device's base address, credential, and session cookie.

    The cookie is held on the session, not in the client's jar: absent
    before :meth:`login`, present until :meth:`logout` or :meth:`invalidate`.
    At most one token is held at a time.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        *,
        rng: random.Random | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._endpoint = endpoint
        self._base_url = parse_base_url(endpoint.url)
        self._rng = rng or random.Random()
        self._token: tuple[str, str] | None = None
        self._client: httpx.AsyncClient | None = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
        )

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def server(self) -> str:
        """The configured device address, as given."""
        return self._endpoint.url

    @property
    def token(self) -> tuple[str, str] | None:
        """The held session cookie as ``(name, value)``, or ``None``."""
        return self._token

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    @property
    def closed(self) -> bool:
        return self._client is None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        *,
        data: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        if self._client is None:
            raise TransportError(f"Session for {self.server} is closed")
        try:
            return await self._client.request(method, path, data=data, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {self._base_url.join(path)} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def login(self) -> None:
        """Authenticate and store the session cookie.

        Raises:
            AlreadyAuthenticatedError: A token is already held.
            AuthError: Transport failure, non-200 status, or no cookie returned.
        """
        if self._token is not None:
            raise AlreadyAuthenticatedError(f"Already logged in to {self.server}")

        form = {
            "AccessVal": str(self._rng.randrange(ACCESS_VAL_RANGE)),
            "LoginUser": self._endpoint.user,
            "LoginPass": self._endpoint.password,
        }
        try:
            resp = await self._send("POST", LOGIN_PATH, data=form)
        except TransportError as exc:
            raise AuthError(f"Authentication failed for {self.server}: {exc}") from exc

        if resp.status_code != 200:
            raise AuthError(
                f"Authentication failed for {self.server} (HTTP {resp.status_code})",
                status_code=resp.status_code,
            )

        cookie = _first_cookie(resp)
        if cookie is None:
            raise AuthError(f"No cookies returned by {self.server}", status_code=resp.status_code)

        if self._client is not None:
            self._client.cookies.clear()
        self._token = cookie
        logger.info("Logged in to %s", self.server)

    def invalidate(self) -> None:
        """Forget the held token without contacting the device."""
        self._token = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        data: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send an authenticated request and return the raw response.

        Raises:
            NotAuthenticatedError: No session token is held.
            TransportError: The request could not be completed.
        """
        if self._token is None:
            raise NotAuthenticatedError(f"Not logged in to {self.server}")
        name, value = self._token
        return await self._send(method, path, data=data, headers={"Cookie": f"{name}={value}"})

    async def logout(self) -> None:
        """Best-effort logout.  Always clears the token and closes the client."""
        try:
            if self._token is not None:
                await self.request("POST", LOGOUT_PATH, data={"Logout": "1"})
                logger.info("Logged out of %s", self.server)
        except Exception:
            logger.debug("Logout from %s failed", self.server, exc_info=True)
        finally:
            self._token = None
            await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def __aenter__(self) -> DeviceSession:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.logout()
