"""
lineage.commands - CLI command implementations
"""

__all__ = [
    "build_cmd",
    "check_cmd",
    "content_cmd",
    "family_cmd",
    "init",
    "link_cmd",
    "node_cmd",
    "path_cmd",
    "serve_cmd",
]
