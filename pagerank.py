import logging
import math
import os
import time
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Sequence, Tuple

from graph import Graph, Node

log = logging.getLogger("pagerank")

DEFAULT_DAMPING = 0.85
DEFAULT_EPSILON = 1e-6
DEFAULT_MAX_ITERATIONS = 1000

_TRUE_VALUES = {"1", "true", "yes", "on"}


class DegenerateState(RuntimeError):
    """Total score mass was zero (or not finite) when normalizing."""

    def __init__(self, message: str, node_count: int, iteration: Optional[int] = None, total: float = 0.0):
        super().__init__(message)
        self.node_count = node_count
        self.iteration = iteration
        self.total = total


class PageRankResult(NamedTuple):
    iterations: int
    converged: bool
    max_delta: float


class NotConverged(RuntimeError):
    """Iteration cap reached before every score settled within epsilon."""

    def __init__(self, message: str, result: PageRankResult, node_count: int):
        super().__init__(message)
        self.result = result
        self.node_count = node_count
        self.iteration = result.iterations


@dataclass(frozen=True)
class PageRankConfig:
    damping_factor: float = DEFAULT_DAMPING
    epsilon: float = DEFAULT_EPSILON
    max_iterations: Optional[int] = DEFAULT_MAX_ITERATIONS
    in_place: bool = False
    redistribute_dangling: bool = False
    log_every_iters: int = 0

    def __post_init__(self) -> None:
        if not 0.0 < self.damping_factor < 1.0:
            raise ValueError(f"damping_factor must be in (0, 1), got {self.damping_factor}")
        if not self.epsilon > 0.0:
            raise ValueError(f"epsilon must be > 0, got {self.epsilon}")
        if self.max_iterations is not None:
            if isinstance(self.max_iterations, bool) or not isinstance(self.max_iterations, int):
                raise ValueError(f"max_iterations must be an int or None, got {self.max_iterations!r}")
            if self.max_iterations < 1:
                raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.log_every_iters < 0:
            raise ValueError(f"log_every_iters must be >= 0, got {self.log_every_iters}")

    @classmethod
    def from_env(cls) -> "PageRankConfig":
        """
        Read defaults from PAGERANK_* environment variables.

        PAGERANK_MAX_ITERATIONS of 0 (or empty) means no iteration cap.
        """
        raw_max = os.environ.get("PAGERANK_MAX_ITERATIONS", str(DEFAULT_MAX_ITERATIONS)).strip()
        max_iterations = int(raw_max) if raw_max else 0
        return cls(
            damping_factor=float(os.environ.get("PAGERANK_DAMPING", DEFAULT_DAMPING)),
            epsilon=float(os.environ.get("PAGERANK_EPSILON", DEFAULT_EPSILON)),
            max_iterations=max_iterations or None,
            in_place=os.environ.get("PAGERANK_IN_PLACE", "").strip().lower() in _TRUE_VALUES,
            redistribute_dangling=(
                os.environ.get("PAGERANK_REDISTRIBUTE_DANGLING", "").strip().lower() in _TRUE_VALUES
            ),
        )


def update_score(
    graph: Graph,
    node: Node,
    damping_factor: float,
    n: int,
    scores: Optional[Sequence[float]] = None,
    dangling_share: float = 0.0,
) -> float:
    """
    New score for one node:

      PR(v) = (1 - d)/n + d * ( sum_{p in In(v)} PR(p) / C(p) + dangling_share )

    Parents with zero out-degree are skipped. Parent scores come from `scores`
    (indexed by id - 1) when given, otherwise from the parents' current score.
    """
    contribution_sum = 0.0
    for parent_id in node.in_edges:
        parent = graph.node(parent_id)
        c = parent.out_degree
        if c == 0:
            continue
        parent_score = scores[parent_id - 1] if scores is not None else parent.score
        contribution_sum += parent_score / c

    random_walk = (1.0 - damping_factor) / n
    return random_walk + damping_factor * (contribution_sum + dangling_share)


def one_iteration(
    graph: Graph,
    damping_factor: float,
    in_place: bool = False,
    redistribute_dangling: bool = False,
    iteration: Optional[int] = None,
) -> None:
    """
    One relaxation pass over every node followed by normalization.

    By default every node reads its parents' scores from the start of the
    pass (Jacobi). With in_place=True nodes are updated in construction order
    and each reads whatever its parents hold at that moment, so parents
    visited earlier in the pass contribute their new score (Gauss-Seidel).
    """
    nodes = graph.nodes()
    n = len(nodes)
    previous = graph.scores()

    # dangling mass is lost unless redistribute_dangling is set
    dangling_share = 0.0
    if redistribute_dangling and n:
        dangling_mass = sum(previous[node.id - 1] for node in nodes if node.out_degree == 0)
        dangling_share = dangling_mass / n

    if in_place:
        for node in nodes:
            node.score = update_score(graph, node, damping_factor, n, dangling_share=dangling_share)
    else:
        new_scores = [
            update_score(graph, node, damping_factor, n, scores=previous, dangling_share=dangling_share)
            for node in nodes
        ]
        for node, score in zip(nodes, new_scores):
            node.score = score

    total = sum(node.score for node in nodes)
    if not (math.isfinite(total) and total > 0.0):
        raise DegenerateState(
            f"cannot normalize scores: total={total} over {n} nodes"
            + (f" at iteration {iteration}" if iteration is not None else ""),
            node_count=n,
            iteration=iteration,
            total=total,
        )

    for node in nodes:
        node.score /= total


def compute(
    graph: Graph,
    damping_factor: float = DEFAULT_DAMPING,
    epsilon: float = DEFAULT_EPSILON,
    max_iterations: Optional[int] = DEFAULT_MAX_ITERATIONS,
    in_place: bool = False,
    redistribute_dangling: bool = False,
    log_every_iters: int = 0,
    strict: bool = False,
) -> PageRankResult:
    config = PageRankConfig(
        damping_factor=damping_factor,
        epsilon=epsilon,
        max_iterations=max_iterations,
        in_place=in_place,
        redistribute_dangling=redistribute_dangling,
        log_every_iters=log_every_iters,
    )
    return compute_with_config(graph, config, strict=strict)


def compute_with_config(graph: Graph, config: PageRankConfig, strict: bool = False) -> PageRankResult:
    """
    Run one_iteration until no node's score moves by more than epsilon.

    Scores are updated in place on the graph. An empty graph is a no-op.
    If max_iterations is reached first, the best-effort scores stay on the
    graph and the result has converged=False; strict=True raises
    NotConverged instead. max_iterations=None never gives up.
    """
    n = graph.node_count()
    if n == 0:
        log.info("Empty graph, nothing to rank")
        return PageRankResult(iterations=0, converged=True, max_delta=0.0)

    t0 = time.time()
    it = 0
    max_delta = math.inf

    while config.max_iterations is None or it < config.max_iterations:
        it += 1
        previous = graph.scores()

        one_iteration(
            graph,
            config.damping_factor,
            in_place=config.in_place,
            redistribute_dangling=config.redistribute_dangling,
            iteration=it,
        )

        max_delta = max(abs(node.score - old) for node, old in zip(graph.nodes(), previous))

        if config.log_every_iters and (it == 1 or it % config.log_every_iters == 0):
            elapsed = time.time() - t0
            log.info(
                f"iter={it:3d} max_delta={max_delta:.3e} "
                f"sumPR={sum(graph.scores()):.6f} elapsed={elapsed:.2f}s"
            )

        if max_delta <= config.epsilon:
            log.info(f"Converged after {it} iterations on {n} nodes (max_delta={max_delta:.3e})")
            return PageRankResult(iterations=it, converged=True, max_delta=max_delta)

    result = PageRankResult(iterations=it, converged=False, max_delta=max_delta)
    message = (
        f"PageRank did not converge within {it} iterations on {n} nodes "
        f"(max_delta={max_delta:.3e}, epsilon={config.epsilon:g})"
    )
    if strict:
        raise NotConverged(message, result=result, node_count=n)
    log.warning(message)
    return result


REPORT_RULE = "=" * 35
REPORT_HEADER = " " * 12 + "Page Rank" + " " * 14


def _check_precision(precision: int) -> None:
    if precision < 0:
        raise ValueError(f"precision must be >= 0, got {precision}")


def final_scores(graph: Graph, precision: Optional[int] = 3) -> List[Tuple[str, float]]:
    """(node id, score) in construction order, rounded as "%.3f" would print."""
    if precision is None:
        return [(node.name, node.score) for node in graph.nodes()]
    _check_precision(precision)
    return [(node.name, float(f"{node.score:.{precision}f}")) for node in graph.nodes()]


def top_nodes(graph: Graph, k: int = 5) -> List[Tuple[str, float]]:
    ranked = sorted(graph.nodes(), key=lambda node: node.score, reverse=True)
    return [(node.name, node.score) for node in ranked[:k]]


def format_report(scores: Sequence[Tuple[str, float]], precision: int = 3) -> str:
    _check_precision(precision)
    lines = [REPORT_RULE, REPORT_HEADER, REPORT_RULE]
    for name, score in scores:
        lines.append(f"Node {name}: {score:.{precision}f}")
    lines.append(REPORT_RULE)
    return "\n".join(lines)
