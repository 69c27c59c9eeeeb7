"""Sensitive-field redaction for logs and audit entries."""

from collections.abc import Iterable, Mapping, MutableMapping
from typing import Any

REDACTED = "[REDACTED]"

DEFAULT_SENSITIVE_FIELDS: tuple[str, ...] = (
    "password",
    "token",
    "secret",
    "key",
    "apikey",
    "auth",
    "credential",
    "jwt",
    "ssn",
    "credit",
    "card",
    "cvv",
    "authorization",
)


class Redactor:
    """Replaces values whose key contains a sensitive substring (case-insensitive).

    Also usable as a structlog processor.
    """

    def __init__(self, extra_fields: Iterable[str] = ()) -> None:
        fields = {f.lower() for f in DEFAULT_SENSITIVE_FIELDS}
        fields.update(f.strip().lower() for f in extra_fields if f.strip())
        self._fields = frozenset(fields)

    @property
    def fields(self) -> frozenset[str]:
        return self._fields

    def is_sensitive(self, key: str) -> bool:
        lowered = key.lower()
        return any(field in lowered for field in self._fields)

    def redact(self, value: Any) -> Any:
        """Return a redacted copy of *value*; the input is never mutated."""
        if isinstance(value, Mapping):
            return {
                k: (
                    REDACTED
                    if isinstance(k, str) and self.is_sensitive(k)
                    else self.redact(v)
                )
                for k, v in value.items()
            }
        if isinstance(value, list | tuple):
            return [self.redact(v) for v in value]
        return value

    def __call__(
        self, logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        for key in list(event_dict):
            if key == "event":
                continue
            if self.is_sensitive(key):
                event_dict[key] = REDACTED
            elif isinstance(event_dict[key], Mapping | list | tuple):
                event_dict[key] = self.redact(event_dict[key])
        return event_dict
