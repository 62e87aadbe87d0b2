"""
lineage.commands.check_cmd - Verify the persisted hierarchy.

Checks the node-set invariants and looks for cycles among the stored
hierarchical relationships.
"""

from __future__ import annotations

import argparse
from typing import Any, Dict

from lineage.commands.common import open_service, print_json


def run(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Run the check command."""
    service = open_service(config)
    violations = service.check_integrity()
    cycles = service.detect_relationship_cycles()

    if args.json:
        print_json(
            {
                "consistent": not violations and not cycles.has_cycles,
                "violations": violations,
                "cycles": cycles.cycle_paths,
            }
        )
    else:
        for violation in violations:
            print(f"✗ {violation}")
        for cycle in cycles.cycle_paths:
            print(f"✗ relationship cycle: {' -> '.join(cycle)}")
        if not violations and not cycles.has_cycles and not args.quiet:
            print("✓ Hierarchy is consistent")

    return 1 if violations or cycles.has_cycles else 0
