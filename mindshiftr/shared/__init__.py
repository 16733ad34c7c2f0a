"""Shared models, stores, lexicon tables and utilities."""
