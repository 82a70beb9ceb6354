"""devshop-server: Headless FastAPI server coordinating two cooperating agents.

This package provides the line-framed JSON-RPC client for tool server
subprocesses and the exchange-limited communication ledger that governs
how a requirements agent and a technical agent hand a conversation back
and forth.
"""

from devshop_server.app import create_app

__version__ = "0.1.0"

__all__ = ["create_app", "__version__"]
