"""
Mailgun webhook authentication.

Mailgun signs every webhook with HMAC-SHA256 over ``timestamp + token`` using
the account's (or the sending domain's) webhook signing key. The signature
fields arrive either flat (``timestamp``, ``token``, ``signature``) or nested
under a ``signature`` object, depending on the webhook API version.
"""
import enum
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from inbounder.utils.helpers import email_domain

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


class AuthErrorKind(enum.Enum):
    MISSING_PARAMETERS = "missing_parameters"
    STALE_TIMESTAMP = "stale_timestamp"
    KEY_NOT_CONFIGURED = "key_not_configured"
    INVALID_SIGNATURE = "invalid_signature"


_MESSAGES = {
    AuthErrorKind.MISSING_PARAMETERS: "Missing signature parameters",
    AuthErrorKind.STALE_TIMESTAMP: "Signature timestamp is too old",
    AuthErrorKind.KEY_NOT_CONFIGURED: "Webhook signing key not configured",
    AuthErrorKind.INVALID_SIGNATURE: "Signature is invalid",
}


class AuthError(Exception):
    """Terminal authentication failure; the request must be rejected."""

    def __init__(self, kind: AuthErrorKind, message: Optional[str] = None):
        self.kind = kind
        super().__init__(message or _MESSAGES[kind])


@dataclass(frozen=True)
class SigningContext:
    timestamp: int
    token: str
    signature: str
    # Exactly as sent; the HMAC covers these characters, not int(timestamp)
    raw_timestamp: str = ""

    @property
    def signed_timestamp(self) -> str:
        return self.raw_timestamp or str(self.timestamp)


@dataclass(frozen=True)
class WebhookAuthConfig:
    signing_key: Optional[str] = None
    mailer_secret: Optional[str] = None
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS
    tenant_domain_prefix: str = "mg."
    verify_signature: bool = True

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> "WebhookAuthConfig":
        verify = cfg.get("MAILGUN_WEBHOOK_VERIFY_SIGNATURE", True)
        tolerance = cfg.get("MAILGUN_WEBHOOK_TOLERANCE")
        return cls(
            signing_key=cfg.get("MAILGUN_WEBHOOK_SIGNING_KEY") or None,
            mailer_secret=cfg.get("MAILGUN_SECRET") or None,
            tolerance_seconds=int(tolerance) if tolerance is not None else DEFAULT_TOLERANCE_SECONDS,
            tenant_domain_prefix=cfg.get("MAILGUN_TENANT_DOMAIN_PREFIX", "mg.") or "",
            verify_signature=bool(verify),
        )


def _nested(payload: Mapping[str, Any], *path: str) -> Any:
    node: Any = payload
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def parse_signature(payload: Mapping[str, Any]) -> SigningContext:
    """Normalize flat or nested signature fields into a SigningContext."""
    sig_field = payload.get("signature")
    if isinstance(sig_field, Mapping):
        timestamp = sig_field.get("timestamp")
        token = sig_field.get("token")
        signature = sig_field.get("signature")
    else:
        timestamp = payload.get("timestamp")
        token = payload.get("token")
        signature = sig_field

    if timestamp in (None, "") or not token or not signature:
        raise AuthError(AuthErrorKind.MISSING_PARAMETERS)

    try:
        ts = int(str(timestamp).strip())
    except ValueError:
        raise AuthError(AuthErrorKind.MISSING_PARAMETERS, "Signature timestamp is not an integer")

    return SigningContext(timestamp=ts, token=str(token), signature=str(signature), raw_timestamp=str(timestamp))


def _to_bytes(value: str) -> bytes:
    # surrogatepass: JSON bodies may carry lone surrogates
    return value.encode("utf-8", "surrogatepass")


def compute_signature(key: str, timestamp, token: str) -> str:
    return hmac.new(_to_bytes(key), _to_bytes(f"{timestamp}{token}"), hashlib.sha256).hexdigest()


def _sender_address(payload: Mapping[str, Any]) -> Optional[str]:
    for candidate in (
        payload.get("from"),
        payload.get("sender"),
        _nested(payload, "event-data", "message", "headers", "from"),
        _nested(payload, "event-data", "envelope", "sender"),
    ):
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    return None


class WebhookAuthenticator:
    def __init__(
        self,
        config: WebhookAuthConfig,
        tenant_lookup: Optional[Callable[[str], Optional[str]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.tenant_lookup = tenant_lookup
        self.clock = clock

    def tenant_domains(self, payload: Mapping[str, Any]) -> list:
        domain = email_domain(_sender_address(payload))
        if not domain:
            return []
        prefix = self.config.tenant_domain_prefix
        if prefix and not domain.startswith(prefix):
            return [prefix + domain, domain]
        return [domain]

    def resolve_signing_key(self, payload: Mapping[str, Any]) -> str:
        """Tenant key for the sender's domain, then the global key, then the mailer secret."""
        if self.tenant_lookup is not None:
            for domain in self.tenant_domains(payload):
                key = self.tenant_lookup(domain)
                if key:
                    logger.debug("Using tenant signing key for %s", domain)
                    return key

        key = self.config.signing_key or self.config.mailer_secret
        if not key:
            raise AuthError(AuthErrorKind.KEY_NOT_CONFIGURED)
        return key

    def verify(self, payload: Mapping[str, Any], configured_keys: Optional[Iterable[str]] = None) -> None:
        """
        Raise AuthError unless ``payload`` carries a fresh, valid Mailgun signature.

        ``configured_keys`` overrides key resolution with an explicit ordered
        list of candidates (e.g. during key rotation).
        """
        if not self.config.verify_signature:
            logger.warning("Mailgun signature verification is disabled")
            return

        try:
            ctx = parse_signature(payload)

            age = self.clock() - ctx.timestamp
            # No lower bound: future timestamps (clock skew) pass
            if age > self.config.tolerance_seconds:
                raise AuthError(AuthErrorKind.STALE_TIMESTAMP)

            if configured_keys is not None:
                keys = [k for k in configured_keys if k]
                if not keys:
                    raise AuthError(AuthErrorKind.KEY_NOT_CONFIGURED)
            else:
                keys = [self.resolve_signing_key(payload)]

            for key in keys:
                expected = compute_signature(key, ctx.signed_timestamp, ctx.token)
                # bytes, not str: compare_digest rejects non-ASCII str input
                if hmac.compare_digest(expected.encode("ascii"), _to_bytes(ctx.signature)):
                    logger.info("Mailgun signature verified (timestamp=%s, age=%ss)", ctx.timestamp, int(age))
                    return

            raise AuthError(AuthErrorKind.INVALID_SIGNATURE)
        except AuthError as exc:
            logger.warning("Mailgun signature rejected: %s (%s)", exc, exc.kind.value)
            raise
