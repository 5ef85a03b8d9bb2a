"""Entry validation package."""

from balance_ledger.validation.validator import EntryValidator

__all__ = ["EntryValidator"]
