"""
HTTP API for overall.

Run with:
    overall serve
"""

from overall.api.app import create_app

__all__ = ["create_app"]
