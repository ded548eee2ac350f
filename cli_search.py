"""Terminal client that reuses the in-process search logic."""
from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Iterable

from product_search.cache import get_cache
from product_search.es_client import get_client
from product_search.indexing import recreate_index
from product_search.models import SearchRequest, SearchResponse
from product_search.search import search_products

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


async def perform_query(query: str, page: int | None = None, size: int | None = None) -> SearchResponse:
    es = get_client()
    return await search_products(es, SearchRequest(textQuery=query, page=page, size=size))


def interactive_shell(page: int | None, size: int | None) -> None:
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
        response = asyncio.run(perform_query(query, page, size))
        pretty_print_response(query, response)


def pretty_print_response(query: str, response: SearchResponse) -> None:
    color = GREEN if response.totalHits else RED
    print(f"Query: {query} | total hits: {color}{response.totalHits}{RESET}")
    for idx, product in enumerate(response.products, start=1):
        print(
            f"  {idx:02d}. {product.get('id')} | {product.get('brand')} | "
            f"{product.get('name')} | {product.get('price')}"
        )
    for facet, buckets in response.facets.items():
        summary = ", ".join(f"{bucket.value}={bucket.count}" for bucket in buckets) or "-"
        print(f"  [{facet}] {summary}")


def batch_mode(file_path: Path, page: int | None, size: int | None) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if not query:
                continue
            response = asyncio.run(perform_query(query, page, size))
            pretty_print_response(query, response)


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the product search service")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument("--page", type=int, help="1-based result page")
    parser.add_argument("--size", type=int, help="Results per page")
    parser.add_argument(
        "--recreate-index",
        action="store_true",
        help="Rotate the product alias onto a freshly loaded index before searching",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.recreate_index:
        result = asyncio.run(recreate_index(get_client(), cache=get_cache()))
        print(
            f"Alias {result.alias} -> {result.index} | indexed: {result.indexed} | "
            f"failed: {result.failed} | deleted: {', '.join(result.deleted) or '-'}"
        )
        if not args.query and not args.batch:
            return 0

    if args.batch:
        batch_mode(args.batch, args.page, args.size)
        return 0
    if args.query:
        response = asyncio.run(perform_query(args.query, args.page, args.size))
        pretty_print_response(args.query, response)
        return 0
    interactive_shell(args.page, args.size)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
