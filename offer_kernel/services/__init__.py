"""Imperative shell: draft persistence, autosave, editing sessions, export."""

from offer_kernel.services.autosave import DraftAutosaver, daemon_timer
from offer_kernel.services.draft_store import DraftStore, InMemoryDraftStore, SqlDraftStore
from offer_kernel.services.offer_session import OfferSession
from offer_kernel.services.quote_export import (
    CustomerInfo,
    build_quote_export,
    dumps_quote_export,
    export_filename,
)

__all__ = [
    "CustomerInfo",
    "DraftAutosaver",
    "DraftStore",
    "InMemoryDraftStore",
    "OfferSession",
    "SqlDraftStore",
    "build_quote_export",
    "daemon_timer",
    "dumps_quote_export",
    "export_filename",
]
