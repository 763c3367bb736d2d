"""
EnSync CLI - Three-layer client for the EnSync event API.

Layers:
- core: Types, errors and the HTTP client (auth, retry, rate limiting)
- sdk: EnSyncClient with typed request builders per resource
- cli: Command-line interface
"""

from ensync_cli.core.client import ClientConfig
from ensync_cli.sdk import EnSyncClient
from ensync_cli.version import __version__

__all__ = ["ClientConfig", "EnSyncClient", "__version__"]
