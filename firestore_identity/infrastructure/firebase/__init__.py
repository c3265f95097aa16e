"""Firestore REST client and the identity stores built on it."""

from firestore_identity.infrastructure.firebase._rest_client import FirestoreRESTClient
from firestore_identity.infrastructure.firebase.client import create_firestore_client
from firestore_identity.infrastructure.firebase.collections import CollectionLayout

__all__ = [
    "CollectionLayout",
    "FirestoreRESTClient",
    "create_firestore_client",
]
