"""lineage.server - Flask REST API over the hierarchy engine.

Provides a thin REST wrapper over LineageService, exposing content
families, path queries and hierarchy mutations via HTTP endpoints.
"""

from lineage.server.app import create_app

__all__ = ["create_app"]
