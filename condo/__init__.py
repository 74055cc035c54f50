"""Condominium ledger: fee resolution, allocation reconciliation and debt tracking."""

__version__ = "0.1.0"
