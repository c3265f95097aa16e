"""Firestore-backed identity stores: users, roles and user<->role membership."""

__version__ = "0.1.0"
