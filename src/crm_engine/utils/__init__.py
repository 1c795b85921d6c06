"""Shared helpers: logging, errors, caching, estimators, guards."""
