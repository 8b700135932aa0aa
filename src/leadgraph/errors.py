"""Exception taxonomy for ingestion.

Store failures are not wrapped: ``psycopg.Error`` propagates to the caller
unchanged and is fatal for the request that triggered it.
"""

from __future__ import annotations

from typing import Any


class LeadgraphError(Exception):
    """Base class for errors raised by the ingestion core."""


class PayloadValidationError(LeadgraphError):
    """An inbound payload is malformed or incomplete.

    ``issues`` is a list of ``{"loc": str, "msg": str}`` dicts, one per
    offending field.
    """

    def __init__(self, message: str, issues: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.issues = issues or []

    @classmethod
    def from_pydantic(cls, exc: Any) -> PayloadValidationError:
        issues = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        summary = "; ".join(f"{i['loc']}: {i['msg']}" for i in issues)
        return cls(summary or "Invalid payload", issues)


class KeyDerivationError(LeadgraphError, ValueError):
    """No identifying signal is strong enough to build a natural key."""


class NotFoundError(LeadgraphError):
    """A payload refers to an entity the store does not know about."""
