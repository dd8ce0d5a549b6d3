"""
Marketplace core: matching, negotiation and live refresh of dashboards.
"""
