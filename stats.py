import numpy as np
from typing import Dict, List, Sequence, Union

from graph import Graph


def stats_block(vals: Sequence[Union[int, float]]) -> Dict[str, Union[float, int, List[float]]]:
    if not vals:
        raise ValueError("vals is empty")

    arr = np.array(vals, dtype=float)
    # counts stay ints, scores keep their fractions
    as_number = int if np.all(arr == np.floor(arr)) else float

    return {
        "average": float(arr.mean()),
        "median": float(np.median(arr)),
        "min": as_number(arr.min()),
        "max": as_number(arr.max()),
        "quintiles": [
            float(np.percentile(arr, 20)),
            float(np.percentile(arr, 40)),
            float(np.percentile(arr, 60)),
            float(np.percentile(arr, 80)),
        ],
    }


def degree_stats(graph: Graph) -> Dict[str, Dict[str, Union[float, int, List[float]]]]:
    nodes = graph.nodes()
    return {
        "out_degree": stats_block([node.out_degree for node in nodes]),
        "in_degree": stats_block([node.in_degree for node in nodes]),
    }


def score_summary(graph: Graph) -> Dict[str, float]:
    """Sum, min and max of the current scores."""
    scores = graph.scores()
    if not scores:
        raise ValueError("graph has no nodes")

    arr = np.array(scores, dtype=float)
    return {
        "sum": float(arr.sum()),
        "min": float(arr.min()),
        "max": float(arr.max()),
    }
