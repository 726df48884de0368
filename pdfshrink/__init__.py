"""
PDF Shrink: compress uploaded PDFs by trying several presets and keeping
the smallest valid result.
"""

__version__ = "0.1.0"
