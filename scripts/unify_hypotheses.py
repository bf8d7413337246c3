#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from config import get_settings
from models.mutation import describe_mutation
from services.hypothesis_store import HypothesisStore
from services.unification import HypothesisUnifier


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Unify stored hypotheses and plan parallel batches")
    parser.add_argument("spec", nargs="?", default=settings.default_spec, help="Spec identifier")
    parser.add_argument("--apl", type=Path, help="Action priority list the mutations target")
    parser.add_argument(
        "--data-dir",
        default=str(settings.data_dir),
        help=f"Hypothesis data directory (default: {settings.data_dir})",
    )
    parser.add_argument("--dry-run", action="store_true", help="Do not write results back to the store")
    parser.add_argument("--batches", action="store_true", help="Print the conflict-free batches")
    parser.add_argument("--top", type=int, default=15, help="Number of groups to print (default: 15)")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s %(message)s")

    script_text = None
    if args.apl is not None:
        if not args.apl.exists():
            raise SystemExit(f"Action priority list not found: {args.apl}")
        script_text = args.apl.read_text(encoding="utf-8")

    store = HypothesisStore(Path(args.data_dir), args.spec)
    unifier = HypothesisUnifier(store=store, settings=settings)
    result = unifier.run(script_text, persist=not args.dry_run)

    output = {
        "spec": args.spec,
        "reset": result.reset,
        "persisted": result.persisted,
        "summary": result.summary,
        "groups": [
            {
                "fingerprint": group.fingerprint,
                "priority": group.priority,
                "consensus": group.consensus_count,
                "sources": group.consensus_sources,
                "mutation": describe_mutation(group.mutation) if group.mutation else None,
                "mutation_source": group.mutation_source,
                "members": group.member_ids,
            }
            for group in result.groups[: args.top]
        ],
    }
    if args.batches:
        output["batches"] = [batch.hypothesis_ids for batch in result.batches]
    print(json.dumps(output, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
