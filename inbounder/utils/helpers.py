from datetime import datetime, timezone
from typing import Any, Optional

def utcnow() -> datetime:
    """Naive UTC now; every DateTime column in this package stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def from_unix(value: Any) -> Optional[datetime]:
    """Unix seconds (int, float or numeric string) -> naive UTC datetime; None if unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)

def email_domain(address: Optional[str]) -> Optional[str]:
    """'Acme <ops@Acme.com>' -> 'acme.com'."""
    if not address:
        return None
    addr = str(address).strip()
    if "<" in addr and ">" in addr:
        addr = addr[addr.rindex("<") + 1:addr.rindex(">")]
    if "@" not in addr:
        return None
    domain = addr.rsplit("@", 1)[1].strip().strip(">").lower()
    return domain or None
