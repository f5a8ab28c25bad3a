"""
Transport & Warehouse Management Platform

Multi-tenant freight API: container bookings, warehouse put-away,
stock allocation, pickup and dispatch.
"""

__version__ = "1.0.0"
