"""
HTTP API for the Comproum marketplace.
"""
