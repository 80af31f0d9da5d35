"""
milvet-nav - Offline resilience core for the military-family fertility navigator.

This package provides error classification and retry for backend calls, and
an offline cache proxy that keeps the application usable without a network.
"""

__version__ = "0.1.0"
__author__ = "milvet-nav"
