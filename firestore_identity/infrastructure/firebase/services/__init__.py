"""Firestore-backed maintenance services."""

from firestore_identity.infrastructure.firebase.services.membership_reconciler import (
    MembershipReconciler,
    ReconciliationReport,
)

__all__ = ["MembershipReconciler", "ReconciliationReport"]
