"""
OnSpot core - geofenced business availability and delivery partnerships.
"""

__version__ = "0.3.0"
