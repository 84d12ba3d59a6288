"""Verifier adapters."""
