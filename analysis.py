#!/usr/bin/env python3
import argparse
import logging
import sys
import time
from typing import List, Optional, Tuple

from google.api_core.exceptions import GoogleAPIError
from google.cloud import storage

from graph import ConstructionError, build_graph
from pagerank import (
    NotConverged,
    PageRankConfig,
    compute_with_config,
    final_scores,
    format_report,
    top_nodes,
)
from stats import degree_stats, score_summary

GCS_SCHEME = "gs://"


def setup_logging() -> logging.Logger:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
    )
    return logging.getLogger("analysis")


def parse_edge_list(text: str) -> Tuple[int, List[Tuple[int, int]]]:
    """
    Parse "N M" followed by M "u v" pairs (whitespace separated, 1-indexed).

    Only the shape is checked here; endpoint ranges are checked by build_graph.
    """
    tokens = text.split()
    if len(tokens) < 2:
        raise ConstructionError("edge list must start with '<node_count> <edge_count>'")

    try:
        values = [int(tok) for tok in tokens]
    except ValueError as e:
        raise ConstructionError(f"edge list contains a non-integer token: {e}") from e

    node_count, edge_count = values[0], values[1]
    if edge_count < 0:
        raise ConstructionError(f"edge count must be >= 0, got {edge_count}", node_count=node_count)

    body = values[2:]
    if len(body) != 2 * edge_count:
        raise ConstructionError(
            f"expected {edge_count} edges ({2 * edge_count} endpoints), got {len(body)} endpoints",
            node_count=node_count,
        )

    edges = [(body[i], body[i + 1]) for i in range(0, len(body), 2)]
    return node_count, edges


def read_edge_list(source: str, client: Optional[storage.Client] = None) -> str:
    """Read edge list text from a local path, '-' (stdin) or gs://bucket/blob."""
    if source == "-":
        return sys.stdin.read()

    if source.startswith(GCS_SCHEME):
        bucket_name, _, blob_name = source[len(GCS_SCHEME):].partition("/")
        if not bucket_name or not blob_name:
            raise ValueError(f"expected gs://<bucket>/<blob>, got {source}")
        if client is None:
            client = storage.Client()
        return client.bucket(bucket_name).blob(blob_name).download_as_text()

    with open(source, encoding="utf-8") as f:
        return f.read()


def main(argv: Optional[List[str]] = None) -> int:
    log = setup_logging()
    parser = argparse.ArgumentParser(description="Compute PageRank for a directed graph edge list.")
    try:
        defaults = PageRankConfig.from_env()
    except ValueError as e:
        parser.error(f"invalid PAGERANK_* environment setting: {e}")

    parser.add_argument(
        "--input",
        default="-",
        help="Edge list: local path, gs://bucket/blob, or '-' for stdin.",
    )
    parser.add_argument("--damping", type=float, default=defaults.damping_factor)
    parser.add_argument(
        "--epsilon",
        type=float,
        default=defaults.epsilon,
        help="Stop once no score changes by more than this between iterations.",
    )
    parser.add_argument(
        "--max_iterations",
        type=int,
        default=defaults.max_iterations or 0,
        help="Iteration cap. Use 0 for no cap.",
    )
    parser.add_argument(
        "--in_place",
        action="store_true",
        default=defaults.in_place,
        help="Update scores in place in node order (Gauss-Seidel) instead of from a snapshot.",
    )
    parser.add_argument(
        "--redistribute_dangling",
        action="store_true",
        default=defaults.redistribute_dangling,
        help="Share the score of nodes without out-links across all nodes.",
    )
    parser.add_argument("--precision", type=int, default=3, help="Decimal digits in the report.")
    parser.add_argument(
        "--log_every",
        type=int,
        default=0,
        help="Log progress every N iterations (0 disables).",
    )
    parser.add_argument("--stats", action="store_true", help="Print degree statistics.")
    parser.add_argument("--top", type=int, default=0, help="Also print the top N nodes.")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail with exit code 1 if the iteration cap is reached.",
    )
    args = parser.parse_args(argv)

    if args.precision < 0:
        parser.error(f"--precision must be >= 0, got {args.precision}")

    try:
        config = PageRankConfig(
            damping_factor=args.damping,
            epsilon=args.epsilon,
            max_iterations=args.max_iterations or None,
            in_place=args.in_place,
            redistribute_dangling=args.redistribute_dangling,
            log_every_iters=args.log_every,
        )
    except ValueError as e:
        parser.error(str(e))

    log.info(
        f"Args: input={args.input}, damping={config.damping_factor}, epsilon={config.epsilon}, "
        f"max_iterations={config.max_iterations}, in_place={config.in_place}, "
        f"redistribute_dangling={config.redistribute_dangling}"
    )

    t0 = time.time()
    try:
        node_count, edges = parse_edge_list(read_edge_list(args.input))
        graph = build_graph(node_count, edges)
    except (ConstructionError, ValueError, OSError, GoogleAPIError) as e:
        log.error(f"Could not build graph from {args.input}: {e}")
        return 2
    t1 = time.time()
    log.info(f"Built graph with {graph.node_count()} nodes and {graph.edge_count()} edges in {t1 - t0:.2f}s")

    if args.stats and graph.node_count():
        stats = degree_stats(graph)
        print("\n=== Outgoing Links Stats ===")
        print(stats["out_degree"])
        print("\n=== Incoming Links Stats ===")
        print(stats["in_degree"])
        print()

    log.info("Starting PageRank iterations...")
    exit_code = 0
    try:
        result = compute_with_config(graph, config, strict=args.strict)
        log.info(f"Finished PageRank in {time.time() - t1:.2f}s (iters={result.iterations})")
    except NotConverged as e:
        log.error(f"{e}; reporting best-effort scores")
        exit_code = 1

    print(format_report(final_scores(graph, precision=args.precision), precision=args.precision))

    if args.top > 0 and graph.node_count():
        print(f"\n=== PageRank Top {args.top} ===")
        for i, (name, score) in enumerate(top_nodes(graph, args.top), start=1):
            print(f"{i}. Node {name}  PR={score:.10f}")

    if args.stats and graph.node_count():
        print(f"\nScore summary: {score_summary(graph)}")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
