"""Security helpers for sanitizing data before display or logging.

Credentials from the server configuration (server/admin passwords) must never
reach log output in plain text. Anything that logs config-shaped data goes
through redact_sensitive(); single secrets go through describe_secret().
"""

from __future__ import annotations

from typing import Any, Iterable, Set


DEFAULT_SENSITIVE_KEYS: Set[str] = {"password", "password_hash", "server_password", "admin_password"}

REDACTION_MASK = "***REDACTED***"


def redact_sensitive(data: Any, keys: Iterable[str] | None = None, mask: str = REDACTION_MASK) -> Any:
    """Return a deep-copied structure with sensitive fields redacted.

    - data: Any JSON-serializable Python structure (dict/list/scalars)
    - keys: iterable of key names to redact (case-insensitive). Defaults to DEFAULT_SENSITIVE_KEYS.
    - mask: value used to replace sensitive values.

    Only dict keys matching the sensitive set are replaced; structure is preserved.
    """
    sens_lower = {k.lower() for k in (keys or DEFAULT_SENSITIVE_KEYS)}

    def _walk(node: Any) -> Any:
        if isinstance(node, dict):
            out: dict[Any, Any] = {}
            for k, v in node.items():
                if isinstance(k, str) and k.lower() in sens_lower:
                    out[k] = mask
                else:
                    out[k] = _walk(v)
            return out
        if isinstance(node, list):
            return [_walk(x) for x in node]
        if isinstance(node, tuple):
            return tuple(_walk(x) for x in node)
        return node

    return _walk(data)


def describe_secret(value: str | None, *, unset: str = "None", mask: str = REDACTION_MASK) -> str:
    """Describe whether a secret is configured without revealing it."""
    if not value:
        return unset
    return mask
