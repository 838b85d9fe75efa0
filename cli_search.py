"""Terminal client that reuses the in-process search logic."""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from time import perf_counter
from typing import Iterable

from sugester.cache import NullCache
from sugester.classifier import classify_intent
from sugester.es_client import get_executor
from sugester.query_builder import SearchOptions
from sugester.search_service import build_ranked_search_body, search

MAX_RESULTS = 100
GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


async def perform_query(query: str) -> dict:
    options = SearchOptions(per_page=MAX_RESULTS)
    return await search(get_executor(), query, options, cache=NullCache())


def explain_query(query: str) -> dict:
    """Intent and ranked request body, without touching the index."""
    intent = classify_intent(query)
    return {
        "intent": intent.as_dict(),
        "body": build_ranked_search_body(query.strip(), intent, SearchOptions()),
    }


def run_query(query: str, explain: bool) -> None:
    if explain:
        print(json.dumps(explain_query(query), ensure_ascii=False, indent=2))
        return
    start = perf_counter()
    response = asyncio.run(perform_query(query))
    pretty_print_response(query, response, (perf_counter() - start) * 1000)


def interactive_shell(explain: bool = False) -> None:
    print("Interactive product search. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        run_query(query, explain)


def pretty_print_response(query: str, payload: dict, elapsed_ms: float) -> None:
    products = payload.get("products", [])
    color = GREEN if elapsed_ms < 200 else RED
    eta_label = f"{color}{elapsed_ms:.1f} ms{RESET}"
    intent = (payload.get("intent") or {}).get("type", "-")
    print(f"Query: {query} | intent: {intent} | total: {payload.get('total', 0)} | ETA: {eta_label}")
    if payload.get("fallback_type"):
        print(f"  fallback: {payload['fallback_type']}")
    if payload.get("did_you_mean"):
        print(f"  did you mean: {payload['did_you_mean']}")
    for idx, item in enumerate(products[:MAX_RESULTS], start=1):
        score = item.get("score")
        score_repr = f"{score:.2f}" if isinstance(score, (int, float)) else "-"
        pinned = " [pinned]" if item.get("is_pinned") else ""
        print(
            f"  {idx:02d}. score={score_repr} | {item.get('brand')} | "
            f"{item.get('category')} | {item.get('name')}{pinned}"
        )


def batch_mode(file_path: Path, explain: bool = False) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if not query:
                continue
            run_query(query, explain)


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the product search")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument(
        "--explain",
        action="store_true",
        help="Print the classified intent and the ranked request body instead of searching",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.batch:
        batch_mode(args.batch, args.explain)
        return 0
    if args.query:
        run_query(args.query, args.explain)
        return 0
    interactive_shell(args.explain)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
