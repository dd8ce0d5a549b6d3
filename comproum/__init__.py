"""
Comproum reverse marketplace: buyers post intents, suppliers compete with offers.
"""

__version__ = "1.0.0"
