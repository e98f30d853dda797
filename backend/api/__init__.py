"""
API Package
===========

REST API endpoints for marketplace listing import.
"""

from .routes import register_routes

__all__ = ['register_routes']
