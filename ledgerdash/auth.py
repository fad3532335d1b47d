# ledgerdash/auth.py
"""
Who is calling, and are they allowed in.

Identity comes from the identity provider's ``/userinfo`` endpoint for the
bearer token on the request. Access is granted by claim: a configured role
present on the identity, or an email on the configured allow-list.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

import requests

from ledgerdash.errors import NotAuthenticated, NotAuthorized, UpstreamFailure

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    subject: str
    email: str = ""
    roles: Tuple[str, ...] = field(default_factory=tuple)


def bearer_token(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class IdentityProvider:
    def __init__(
        self,
        domain: str,
        roles_claim: str = "https://ledgerdash/roles",
        session: Optional[requests.Session] = None,
        timeout: float = 20.0,
    ):
        self.domain = (domain or "").rstrip("/")
        self.roles_claim = roles_claim
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "IdentityProvider":
        return cls(settings.auth_domain, settings.auth_roles_claim, session=session, timeout=settings.http_timeout)

    @property
    def userinfo_url(self) -> str:
        base = self.domain if self.domain.startswith("http") else f"https://{self.domain}"
        return f"{base}/userinfo"

    def resolve(self, token: Optional[str]) -> Identity:
        if not token:
            raise NotAuthenticated("Missing bearer token")
        if not self.domain:
            raise UpstreamFailure("AUTH_DOMAIN is not set")
        try:
            r = self.session.get(
                self.userinfo_url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.error("Identity provider unreachable: %s", e.__class__.__name__)
            raise UpstreamFailure("Identity provider unreachable")

        if r.status_code in (401, 403):
            raise NotAuthenticated("Invalid or expired token")
        if r.status_code >= 400:
            raise UpstreamFailure(f"Identity provider error {r.status_code}")
        try:
            claims = r.json() or {}
        except ValueError:
            raise UpstreamFailure("Identity provider returned invalid JSON")

        subject = claims.get("sub")
        if not subject:
            raise NotAuthenticated("Token has no subject")
        roles = claims.get(self.roles_claim) or []
        if isinstance(roles, str):
            roles = [roles]
        return Identity(subject=subject, email=(claims.get("email") or "").lower(), roles=tuple(roles))


def authorize(identity: Identity, allowed_emails: Iterable[str] = (), required_role: str = "") -> Identity:
    """Role first, then email allow-list. With neither configured nobody gets in."""
    if required_role and required_role in identity.roles:
        return identity
    allowed = {e.strip().lower() for e in allowed_emails if e and e.strip()}
    if identity.email and identity.email.lower() in allowed:
        return identity
    log.warning("Access denied for subject=%s", identity.subject)
    raise NotAuthorized("Access restricted", owner=identity.subject)


def dev_identity(owner_id: str) -> Identity:
    """Local development only (AUTH_DISABLED)."""
    if not owner_id:
        raise NotAuthenticated("AUTH_DISABLED requires DEV_OWNER_ID")
    return Identity(subject=owner_id, email="", roles=("dev",))
