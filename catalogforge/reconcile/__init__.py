"""Reconciliation of scraped records against storage."""

from catalogforge.reconcile.reconciler import PersistenceReconciler
from catalogforge.reconcile.service import ScrapeOutcome, ScrapeService

__all__ = ["PersistenceReconciler", "ScrapeOutcome", "ScrapeService"]
