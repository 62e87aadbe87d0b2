"""
lineage.commands.serve_cmd - Run the REST API server.
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Dict

from lineage.commands.common import open_service


def run(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Run the serve command."""
    try:
        from lineage.server import create_app
    except ImportError:
        print("Error: server dependencies not installed.", file=sys.stderr)
        print("Install with: pip install content-lineage[server]", file=sys.stderr)
        return 1

    host = args.host or config["server"]["host"]
    port = args.port or int(config["server"]["port"])
    app = create_app(open_service(config), config)

    print(f"Serving lineage API on http://{host}:{port}/api/status")
    try:
        app.run(host=host, port=port, debug=False)
    except KeyboardInterrupt:
        print("\nServer stopped.")
    return 0
