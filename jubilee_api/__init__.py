"""
Top‑level package for the Silver Jubilee registration API.

This file makes ``jubilee_api`` a Python package so that modules
within ``app`` can be imported using fully qualified names like
``jubilee_api.app.main``.  Without this marker file, import
resolution for ``jubilee_api`` would fail when running tests outside
of the package root.

The package provides no public exports; all functionality lives in
submodules under ``app``.
"""

__all__ = []
