"""
Incident SLA Service
====================

SLA engine for incident tickets.
"""

__version__ = "1.0.0"
