"""HTTP interface for the order ledger."""

from .app import create_app

__all__ = ["create_app"]
