"""Cookie-backed storage for the access and refresh credentials."""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from http.cookiejar import Cookie, LWPCookieJar
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"
COOKIE_PATH = "/"
SAME_SITE = "Lax"


class CredentialStore:
    """Persistent cookie jar holding the credential pair.

    Every call reloads the jar from disk, so processes sharing the same
    file observe each other's writes on their next read. Expired cookies
    are dropped on load and read as absent.
    """

    def __init__(
        self,
        jar_path: str | Path,
        domain: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        secure: bool = False,
    ):
        self.jar_path = Path(jar_path)
        self.domain = domain
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.secure = secure

    def set_access(self, token: str) -> None:
        self._write(ACCESS_COOKIE, token, self.access_ttl)

    def set_refresh(self, token: str) -> None:
        self._write(REFRESH_COOKIE, token, self.refresh_ttl)

    def get_access(self) -> Optional[str]:
        cookie = self.cookie(ACCESS_COOKIE)
        return cookie.value if cookie else None

    def get_refresh(self) -> Optional[str]:
        cookie = self.cookie(REFRESH_COOKIE)
        return cookie.value if cookie else None

    def clear(self) -> None:
        """Remove both credentials. Safe to call when none are stored."""
        jar = self._load()
        for name in (ACCESS_COOKIE, REFRESH_COOKIE):
            try:
                jar.clear(self.domain, COOKIE_PATH, name)
            except KeyError:
                pass
        self._save(jar)

    def cookie(self, name: str) -> Optional[Cookie]:
        """Return the stored cookie with this name, if present and unexpired."""
        for cookie in self._load():
            if cookie.name == name and cookie.domain == self.domain:
                return cookie
        return None

    def _write(self, name: str, value: str, ttl: timedelta) -> None:
        jar = self._load()
        jar.set_cookie(self._make_cookie(name, value, ttl))
        self._save(jar)

    def _make_cookie(self, name: str, value: str, ttl: timedelta) -> Cookie:
        expires = int(time.time() + ttl.total_seconds())
        return Cookie(
            version=0,
            name=name,
            value=value,
            port=None,
            port_specified=False,
            domain=self.domain,
            domain_specified=False,
            domain_initial_dot=False,
            path=COOKIE_PATH,
            path_specified=True,
            secure=self.secure,
            expires=expires,
            discard=False,
            comment=None,
            comment_url=None,
            rest={"SameSite": SAME_SITE},
        )

    def _load(self) -> LWPCookieJar:
        jar = LWPCookieJar(str(self.jar_path))
        if self.jar_path.exists():
            try:
                jar.load(ignore_discard=True)
            except OSError as e:
                logger.warning("Cookie jar at %s is unreadable, starting empty: %s", self.jar_path, e)
                jar = LWPCookieJar(str(self.jar_path))
        return jar

    def _save(self, jar: LWPCookieJar) -> None:
        self.jar_path.parent.mkdir(parents=True, exist_ok=True)
        jar.save(ignore_discard=True)
