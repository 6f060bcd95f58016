"""Query package."""

from splitledger.queries.service import LedgerQueryService

__all__ = ["LedgerQueryService"]
