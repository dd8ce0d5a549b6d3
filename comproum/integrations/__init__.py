"""
Best-effort external lookups (postal code address, market price advisory).

Failures here never block the marketplace flow; callers get None.
"""
