"""
Logistics Pro - shipment lifecycle and tracking API.
"""

__version__ = "1.0.0"
