"""
Client-side session mirror for admin tools and UIs.

Holds a copy of the server's view of the current user (roles, permissions) so
callers can decide what to show. It is advisory only; every request is still
authorized by the server.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


def normalize_role_names(raw: Any) -> frozenset[str]:
    """Accept roles as a list of names or of {"name": ...} objects; return one set of names."""
    if not raw:
        return frozenset()
    names = set()
    for item in raw:
        if isinstance(item, str):
            name = item
        elif isinstance(item, dict):
            name = item.get("name")
        else:
            name = None
        if isinstance(name, str) and name.strip():
            names.add(name.strip())
    return frozenset(names)


class TokenStore(Protocol):
    def get(self) -> str | None: ...

    def set(self, token: str) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStore:
    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def get(self) -> str | None:
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore:
    """Persists the token in a file (the CLI equivalent of browser local storage)."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get(self) -> str | None:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None

    def set(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token, encoding="utf-8")
        self.path.chmod(0o600)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


@dataclass(frozen=True)
class ClientSession:
    """Snapshot of {user, roles, permissions} hydrated from GET /auth/me."""

    user: dict[str, Any] | None = None
    roles: frozenset[str] = field(default_factory=frozenset)
    permissions: frozenset[str] = field(default_factory=frozenset)
    token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.has_role(ADMIN_ROLE)

    def has_role(self, name: str) -> bool:
        return self.is_authenticated and name in self.roles

    def has_permission(self, name: str) -> bool:
        if not self.is_authenticated:
            return False
        return self.is_admin or name in self.permissions


ANONYMOUS = ClientSession()


def session_from_me(payload: dict[str, Any], token: str) -> ClientSession:
    """Build a ClientSession from a /auth/me body, normalizing roles and permissions to name sets."""
    user = payload.get("user") if isinstance(payload, dict) else None
    if not isinstance(user, dict) or "id" not in user:
        raise ValueError("response has no user object")
    return ClientSession(
        user=user,
        roles=normalize_role_names(user.get("roles")),
        permissions=normalize_role_names(user.get("permissions")),
        token=token,
    )


class SessionMirror:
    """
    Keeps a ClientSession in step with the server.

    `load()` hydrates from the stored token; any failure (401, network error,
    unexpected body) discards the token and yields ANONYMOUS rather than a
    stale user.
    """

    def __init__(
        self,
        http: httpx.Client,
        store: TokenStore | None = None,
        api_prefix: str = "/api/v1",
    ) -> None:
        self.http = http
        self.store = store if store is not None else MemoryTokenStore()
        self.api_prefix = api_prefix.rstrip("/")
        self.session: ClientSession = ANONYMOUS

    def _url(self, path: str) -> str:
        return f"{self.api_prefix}{path}"

    def _discard(self) -> ClientSession:
        self.store.clear()
        self.session = ANONYMOUS
        return self.session

    def load(self) -> ClientSession:
        token = self.store.get()
        if not token:
            self.session = ANONYMOUS
            return self.session
        try:
            response = self.http.get(
                self._url("/auth/me"),
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.info("Session hydrate failed: %s", e)
            return self._discard()
        if response.status_code != 200:
            logger.info("Session hydrate rejected with status %s", response.status_code)
            return self._discard()
        try:
            self.session = session_from_me(response.json(), token)
        except ValueError as e:
            logger.info("Session hydrate returned an unexpected body: %s", e)
            return self._discard()
        return self.session

    def _sign_in(self, path: str, body: dict[str, Any], tenant: str | None) -> ClientSession:
        headers = {"X-Tenant": tenant} if tenant else {}
        response = self.http.post(self._url(path), json=body, headers=headers)
        response.raise_for_status()
        self.store.set(response.json()["token"])
        return self.load()

    def login(self, email: str, password: str, tenant: str | None = None) -> ClientSession:
        """Raises httpx.HTTPStatusError on rejected credentials; the stored token is untouched then."""
        return self._sign_in("/auth/login", {"email": email, "password": password}, tenant)

    def register(
        self, email: str, password: str, full_name: str, tenant: str | None = None
    ) -> ClientSession:
        return self._sign_in(
            "/auth/register",
            {"email": email, "password": password, "full_name": full_name},
            tenant,
        )

    def logout(self) -> ClientSession:
        """Tell the server (advisory) and always drop the local token."""
        token = self.store.get()
        if token:
            try:
                self.http.post(
                    self._url("/auth/logout"),
                    headers={"Authorization": f"Bearer {token}"},
                )
            except httpx.HTTPError as e:
                logger.info("Logout call failed; discarding token anyway: %s", e)
        return self._discard()

    def has_role(self, name: str) -> bool:
        return self.session.has_role(name)

    def has_permission(self, name: str) -> bool:
        return self.session.has_permission(name)

    def has_any_permission(self, names: Iterable[str]) -> bool:
        return any(self.session.has_permission(n) for n in names)
