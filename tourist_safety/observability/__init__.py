"""
Observability for tourist safety tracking: logging, metrics and the HTTP surface.
"""
