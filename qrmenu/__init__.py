"""
                QR Menu Ordering

Scan-to-order guest workflow for restaurants: location-gated menu
access, ephemeral per-shop guest sessions, and a kitchen-driven
order status lifecycle.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
