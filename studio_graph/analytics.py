"""
Graph analytics: degree centrality, PageRank, communities, summary stats.

Everything here is a pure function of the node / edge set:
  - degree          in-degree + out-degree over edges inside the node set
  - PageRank        power iteration, uniform dangling redistribution
  - communities     seeded label propagation (xorshift128+ traversal order),
                    dense 0-based labels
  - graph stats     density / average degree / transitivity via networkx

Results are recomputed wholesale whenever the document changes; nothing is
patched incrementally.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import networkx as nx
import numpy as np

from .document import GraphDocument, edge_endpoints, node_id_of
from .presets import DEFAULT_CONFIG, MetricsConfig

logger = logging.getLogger(__name__)

_MASK64 = (1 << 64) - 1


# =========================================================================== #
# Data classes
# =========================================================================== #

@dataclass(frozen=True)
class GraphMetrics:
    """
    Per-node metrics keyed by node id.

    degree        non-negative real (in + out)
    pagerank      sums to ~1 across all nodes
    community_id  dense 0-based label
    """

    degree: Dict[str, float]
    pagerank: Dict[str, float]
    community_id: Dict[str, int]

    @classmethod
    def empty(cls) -> "GraphMetrics":
        return cls(degree={}, pagerank={}, community_id={})

    @property
    def community_count(self) -> int:
        return len(set(self.community_id.values()))

    def community_sizes(self) -> Dict[int, int]:
        return dict(Counter(self.community_id.values()))


@dataclass
class GraphStats:
    n_nodes: int
    n_edges: int
    density: float
    avg_degree: float
    transitivity: float
    n_components: int


# =========================================================================== #
# Logging helpers
# =========================================================================== #

def _get_emit(emit: Callable[[str, Dict[str, Any]], None] | None):
    if emit:
        return emit
    return lambda *_args, **_kwargs: None


# =========================================================================== #
# Seeded random source
# =========================================================================== #

class Xorshift128Plus:
    """
    xorshift128+ generator (Vigna, 2014).

    The two state words are expanded from the seed with splitmix64 so that
    small or similar seeds still give well-mixed streams.
    """

    def __init__(self, seed: int = 0):
        state = seed & _MASK64

        def splitmix() -> int:
            nonlocal state
            state = (state + 0x9E3779B97F4A7C15) & _MASK64
            z = state
            z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & _MASK64
            z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & _MASK64
            return z ^ (z >> 31)

        self._s0 = splitmix()
        self._s1 = splitmix()
        if self._s0 == 0 and self._s1 == 0:
            self._s0 = 1

    def next_u64(self) -> int:
        s1 = self._s0
        s0 = self._s1
        result = (s0 + s1) & _MASK64
        self._s0 = s0
        s1 ^= (s1 << 23) & _MASK64
        self._s1 = s1 ^ s0 ^ (s1 >> 17) ^ (s0 >> 26)
        return result

    def randbelow(self, n: int) -> int:
        if n <= 0:
            raise ValueError("n must be positive")
        return self.next_u64() % n

    def shuffle(self, items: List[Any]) -> None:
        """In-place Fisher-Yates shuffle."""
        for i in range(len(items) - 1, 0, -1):
            j = self.randbelow(i + 1)
            items[i], items[j] = items[j], items[i]


# =========================================================================== #
# Input normalisation
# =========================================================================== #

def _index_graph(
    nodes: Iterable[Any],
    edges: Iterable[Any],
) -> Tuple[List[str], Dict[str, int], np.ndarray, np.ndarray]:
    """Dense node indices plus source / target index arrays of in-set edges."""
    ids = list(dict.fromkeys(node_id_of(n) for n in nodes))
    index = {nid: i for i, nid in enumerate(ids)}

    src: List[int] = []
    tgt: List[int] = []
    for edge in edges:
        s_id, t_id = edge_endpoints(edge)
        si = index.get(s_id)
        ti = index.get(t_id)
        if si is None or ti is None:
            continue
        src.append(si)
        tgt.append(ti)

    return ids, index, np.asarray(src, dtype=np.intp), np.asarray(tgt, dtype=np.intp)


# =========================================================================== #
# Degree
# =========================================================================== #

def degree_centrality(nodes: Iterable[Any], edges: Iterable[Any]) -> Dict[str, float]:
    ids, _, src, tgt = _index_graph(nodes, edges)
    return _degree(ids, src, tgt)


def _degree(ids: Sequence[str], src: np.ndarray, tgt: np.ndarray) -> Dict[str, float]:
    n = len(ids)
    counts = np.bincount(src, minlength=n) + np.bincount(tgt, minlength=n)
    return {nid: float(counts[i]) for i, nid in enumerate(ids)}


# =========================================================================== #
# PageRank
# =========================================================================== #

def pagerank(
    nodes: Iterable[Any],
    edges: Iterable[Any],
    *,
    damping: float = 0.85,
    max_iterations: int = 20,
    tolerance: float = 1e-6,
) -> Dict[str, float]:
    ids, _, src, tgt = _index_graph(nodes, edges)
    return _pagerank(ids, src, tgt, damping, max_iterations, tolerance)


def _pagerank(
    ids: Sequence[str],
    src: np.ndarray,
    tgt: np.ndarray,
    damping: float,
    max_iterations: int,
    tolerance: float,
) -> Dict[str, float]:
    n = len(ids)
    if n == 0:
        return {}

    out_degree = np.bincount(src, minlength=n).astype(float)
    dangling = out_degree == 0
    # dangling sources never appear in src, so the division is safe
    share = np.divide(1.0, out_degree, out=np.zeros(n), where=~dangling)

    rank = np.full(n, 1.0 / n)
    teleport = (1.0 - damping) / n

    for it in range(max_iterations):
        incoming = np.zeros(n)
        if src.size:
            np.add.at(incoming, tgt, rank[src] * share[src])
        dangling_mass = float(rank[dangling].sum())
        new_rank = teleport + damping * (incoming + dangling_mass / n)

        err = float(np.abs(new_rank - rank).sum())
        rank = new_rank
        if err < tolerance:
            logger.debug("PageRank converged after %d iterations (err=%.2e)", it + 1, err)
            break

    return {nid: float(rank[i]) for i, nid in enumerate(ids)}


# =========================================================================== #
# Label propagation
# =========================================================================== #

def label_propagation(
    nodes: Iterable[Any],
    edges: Iterable[Any],
    *,
    seed: int = 42,
    max_iterations: int = 20,
) -> Dict[str, int]:
    ids, _, src, tgt = _index_graph(nodes, edges)
    return _label_propagation(ids, src, tgt, seed, max_iterations)


def _label_propagation(
    ids: Sequence[str],
    src: np.ndarray,
    tgt: np.ndarray,
    seed: int,
    max_iterations: int,
) -> Dict[str, int]:
    """
    Label propagation over the undirected adjacency.

    Every pass visits nodes in an order shuffled by xorshift128+; each node
    takes the most frequent label among its neighbours (ties -> smallest
    label). Labels are updated in place, so nodes later in a pass see the
    updates made earlier in it and the seed decides the outcome. Isolated
    nodes keep their own label.
    """
    n = len(ids)
    if n == 0:
        return {}

    neighbours: List[List[int]] = [[] for _ in range(n)]
    for s, t in zip(src.tolist(), tgt.tolist()):
        if s == t:
            continue
        neighbours[s].append(t)
        neighbours[t].append(s)

    labels = list(range(n))
    order = list(range(n))
    rng = Xorshift128Plus(seed)

    for it in range(max_iterations):
        rng.shuffle(order)
        changed = False

        for i in order:
            adj = neighbours[i]
            if not adj:
                continue
            counts = Counter(labels[j] for j in adj)
            top = max(counts.values())
            best = min(label for label, c in counts.items() if c == top)
            if best != labels[i]:
                labels[i] = best
                changed = True

        if not changed:
            logger.debug("Label propagation stable after %d passes", it + 1)
            break

    dense = {raw: k for k, raw in enumerate(sorted(set(labels)))}
    return {nid: dense[labels[i]] for i, nid in enumerate(ids)}


# =========================================================================== #
# Main entry points
# =========================================================================== #

def compute_graph_metrics(
    nodes: Iterable[Any],
    edges: Iterable[Any],
    *,
    config: Optional[MetricsConfig] = None,
    seed: Optional[int] = None,
    emit: Optional[Callable[[str, Dict[str, Any]], None]] = None,
) -> GraphMetrics:
    """
    Degree, PageRank and community labels for a node / edge set.

    Nodes may be ids or GraphNode objects; edges may be GraphEdge objects or
    (source, target, ...) tuples. Edges with an endpoint outside the node
    set are ignored.
    """
    cfg = config or DEFAULT_CONFIG.metrics
    emitf = _get_emit(emit)

    ids, _, src, tgt = _index_graph(nodes, edges)
    if not ids:
        return GraphMetrics.empty()

    degree = _degree(ids, src, tgt)
    ranks = _pagerank(ids, src, tgt, cfg.damping, cfg.pagerank_iterations, cfg.pagerank_tolerance)
    communities = _label_propagation(
        ids, src, tgt,
        cfg.seed if seed is None else seed,
        cfg.label_iterations,
    )

    metrics = GraphMetrics(degree=degree, pagerank=ranks, community_id=communities)

    logger.debug(
        "Computed metrics for %d nodes / %d edges: %d communities",
        len(ids), int(src.size), metrics.community_count,
    )
    emitf(
        "log",
        {"message": "[analytics] metrics computed",
         "n_nodes": len(ids),
         "n_edges": int(src.size),
         "n_communities": metrics.community_count},
    )
    return metrics


def compute_document_metrics(
    document: GraphDocument,
    *,
    config: Optional[MetricsConfig] = None,
    seed: Optional[int] = None,
    emit: Optional[Callable[[str, Dict[str, Any]], None]] = None,
) -> GraphMetrics:
    return compute_graph_metrics(document.nodes, document.edges, config=config, seed=seed, emit=emit)


def attach_metrics(document: GraphDocument, metrics: GraphMetrics) -> GraphDocument:
    """Copy of `document` whose nodes carry degree / pagerank / community_id."""
    nodes = []
    for node in document.nodes:
        node_metrics = dict(node.metrics)
        if node.id in metrics.degree:
            node_metrics["degree"] = metrics.degree[node.id]
        if node.id in metrics.pagerank:
            node_metrics["pagerank"] = metrics.pagerank[node.id]
        nodes.append(
            replace(
                node,
                metrics=node_metrics,
                community_id=metrics.community_id.get(node.id, node.community_id),
            )
        )
    return document.with_nodes(nodes)


# =========================================================================== #
# Graph statistics
# =========================================================================== #

def compute_graph_stats(document: GraphDocument) -> GraphStats:
    """Summary statistics over the undirected simple graph of the document."""
    if not document.nodes:
        return GraphStats(0, 0, 0.0, 0.0, 0.0, 0)

    G = nx.Graph(document.to_networkx())
    G.remove_edges_from(list(nx.selfloop_edges(G)))

    n = G.number_of_nodes()
    e = G.number_of_edges()
    density = float(nx.density(G)) if n > 1 else 0.0
    avg_degree = float(np.mean([d for _, d in G.degree()])) if n else 0.0
    transitivity = float(nx.transitivity(G)) if n > 2 else 0.0

    return GraphStats(
        n_nodes=n,
        n_edges=e,
        density=density,
        avg_degree=avg_degree,
        transitivity=transitivity,
        n_components=nx.number_connected_components(G),
    )
