"""
                        Services Module

Contains the guest ordering business logic. Storage-facing services have
an in-memory (development) and a database (production) implementation.

Services:
    - geo: Geofence checks and device location providers
    - session: Per-shop guest session persistence
    - orders: Order repositories, status machine, guest order rules
    - workflow: Diner-side ordering workflow and cart
"""
