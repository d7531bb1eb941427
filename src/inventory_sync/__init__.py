"""Background synchronization service for the trading inventory.

Two scheduled engines: currency history sync and agent trade scanning.
"""

__version__ = "0.1.0"
