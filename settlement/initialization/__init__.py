"""
Settlement Initialization Module.

This module contains all initialization logic split into focused modules:
- logging: Logger configuration
- services: Service graph construction and network seeding
"""

__all__ = []
