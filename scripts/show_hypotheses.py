#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from pathlib import Path

from config import get_settings
from services.hypothesis_store import HypothesisStore


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Show stored hypotheses for a spec")
    parser.add_argument("spec", nargs="?", default=settings.default_spec, help="Spec identifier")
    parser.add_argument(
        "--data-dir",
        default=str(settings.data_dir),
        help=f"Hypothesis data directory (default: {settings.data_dir})",
    )
    parser.add_argument(
        "--full",
        action="store_true",
        help="Print full JSON instead of summary",
    )
    args = parser.parse_args()

    store = HypothesisStore(Path(args.data_dir), args.spec)
    if not store.exists():
        raise SystemExit(f"No hypotheses stored for spec '{args.spec}' under {args.data_dir}")

    hypotheses = store.load()
    if args.full:
        payload = [hypothesis.model_dump(mode="json") for hypothesis in hypotheses]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    top = [
        {
            "id": hypothesis.id,
            "status": hypothesis.status,
            "priority": hypothesis.priority,
            "fingerprint": hypothesis.fingerprint,
            "summary": hypothesis.text[:80],
        }
        for hypothesis in store.load(statuses=["pending", "testing"], limit=10)
    ]
    summary = {
        "spec": args.spec,
        "hypotheses": len(hypotheses),
        "statuses": store.status_counts(),
        "with_mutation": sum(1 for hypothesis in hypotheses if hypothesis.mutation is not None),
        "top_pending": top,
    }
    print(json.dumps(summary, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
