"""Ingestion layer.

Translates raw REST bodies and push-channel frames into validated,
defaulted models before anything reaches the store.
"""
