"""Scoring, recommendation and dispatch services.

Components are plain classes constructed with an ``EngineSettings``; the
``Customer360Service`` facade wires them together for callers.
"""
