"""
Compression Server: HTTP surface for the orchestrator.

Run with: python -m pdfshrink serve
"""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
