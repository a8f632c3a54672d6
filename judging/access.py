"""Access gate for a group's judge interface, submission page and results."""

import hashlib
import hmac
import logging
from dataclasses import dataclass

from judging.directory import AdminAuth
from judging.errors import InvalidCredential
from judging.models import JudgingGroup, Resource, Visibility

logger = logging.getLogger(__name__)

PUBLIC = "public"
ADMIN_OVERRIDE = "admin_override"
PASSWORD_ACCEPTED = "password_accepted"
INVALID_CREDENTIAL = "InvalidCredential"


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(password: str | None, password_hash: str | None) -> bool:
    """Check a supplied password against a stored hash.

    A missing password or a missing hash never verifies.
    """
    if not password or not password_hash:
        return False
    return hmac.compare_digest(hash_password(password), password_hash)


def sign_caller(caller_id: str, secret: str) -> str:
    """HMAC-SHA256 signature vouching for ``caller_id``, as hex."""
    return hmac.new(secret.encode("utf-8"), caller_id.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_caller(caller_id: str | None, signature: str | None, secret: str | None) -> bool:
    """Check that ``signature`` was issued for ``caller_id`` with ``secret``.

    Without a configured secret no caller can be verified.
    """
    if not caller_id or not signature or not secret:
        return False
    return hmac.compare_digest(sign_caller(caller_id, secret), signature)


@dataclass
class AccessDecision:
    granted: bool
    reason: str


class AccessGate:
    """Stateless per-request authorization.

    Admins are let through regardless of tier (an override, not a tier).
    Everyone else gets public resources, and password-protected resources
    only with the right password. There are no sessions: each call checks
    afresh against the group as currently stored.
    """

    def __init__(self, auth: AdminAuth):
        self.auth = auth

    def is_admin(self, caller_id: str | None) -> bool:
        return caller_id is not None and self.auth.is_admin(caller_id)

    def authorize(
        self,
        group: JudgingGroup,
        resource: Resource,
        password: str | None = None,
        caller_id: str | None = None,
    ) -> AccessDecision:
        if self.is_admin(caller_id):
            return AccessDecision(True, ADMIN_OVERRIDE)
        if group.visibility_of(resource) is Visibility.PUBLIC:
            return AccessDecision(True, PUBLIC)
        if verify_password(password, group.password_hash_of(resource)):
            return AccessDecision(True, PASSWORD_ACCEPTED)
        logger.warning("Denied %s access to group %s", resource.value, group.id)
        return AccessDecision(False, INVALID_CREDENTIAL)

    def require(
        self,
        group: JudgingGroup,
        resource: Resource,
        password: str | None = None,
        caller_id: str | None = None,
    ) -> AccessDecision:
        """Like ``authorize``, but raise ``InvalidCredential`` on denial."""
        decision = self.authorize(group, resource, password, caller_id)
        if not decision.granted:
            raise InvalidCredential(
                f"The {resource.value.replace('_', ' ')} of {group.name!r} requires a valid password"
            )
        return decision
