"""
Shared geometry and retry helpers for tourist safety tracking.
"""
