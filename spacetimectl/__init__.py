"""spacetimectl - orchestration layer around the SpacetimeDB CLI"""

__version__ = "0.1.0"
