"""Credential sources for the stream connection.

A short-lived bearer token from the auth service is preferred; the stored
session cookie is the lower-trust fallback.
"""

import asyncio
import logging
from http.cookiejar import LoadError, MozillaCookieJar
from http.cookies import CookieError, SimpleCookie
from typing import Callable

import requests

logger = logging.getLogger(__name__)

TOKEN_PATH = "/api/auth/token"

TokenProvider = Callable[[], str | None]


class HttpTokenProvider:
    """Fetches a bearer token from the auth service using the session cookie."""

    def __init__(self, auth_base_url: str, session_token: str | None, cookie_name: str,
                 timeout: float = 10.0, session: requests.Session | None = None):
        self._url = auth_base_url.rstrip("/") + TOKEN_PATH
        self._session_token = session_token
        self._cookie_name = cookie_name
        self._timeout = timeout
        self._session = session or requests.Session()

    def __call__(self) -> str | None:
        cookies = {self._cookie_name: self._session_token} if self._session_token else {}
        try:
            response = self._session.get(self._url, cookies=cookies, timeout=self._timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Token request to %s failed: %s", self._url, e)
            return None

        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            logger.warning("Token response from %s carried no token", self._url)
            return None
        return token


def session_token_from_cookie_header(header: str, name: str) -> str | None:
    """Pick one cookie's value out of a Cookie header string."""
    if not header:
        return None
    cookie = SimpleCookie()
    try:
        cookie.load(header)
    except CookieError as e:
        logger.warning("Could not parse session cookie header: %s", e)
        return None
    morsel = cookie.get(name)
    return morsel.value if morsel is not None and morsel.value else None


def session_token_from_cookie_file(path: str, name: str) -> str | None:
    """Read a session cookie from a Netscape-format cookie jar."""
    if not path:
        return None
    jar = MozillaCookieJar(path)
    try:
        jar.load(ignore_discard=True, ignore_expires=False)
    except FileNotFoundError:
        logger.warning("Cookie file %s not found", path)
        return None
    except (LoadError, OSError) as e:
        logger.warning("Failed to load cookie file %s: %s", path, e)
        return None
    for cookie in jar:
        if cookie.name == name and cookie.value:
            return cookie.value
    return None


class CredentialResolver:
    """Bearer token first, then the session token, else nothing."""

    def __init__(self, token_provider: TokenProvider | None = None, session_token: str | None = None):
        self._token_provider = token_provider
        self._session_token = session_token

    async def resolve(self) -> str | None:
        if self._token_provider is not None:
            # Blocking HTTP call, kept off the event loop
            token = await asyncio.to_thread(self._token_provider)
            if token:
                logger.debug("Using bearer token for stream connection")
                return token
            logger.info("No bearer token available, trying session token")

        if self._session_token:
            logger.info("Using session token as fallback")
            return self._session_token

        logger.warning("No credential available for stream connection")
        return None
