"""Grafo de confianza entre legisladores (networkx)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable

import networkx as nx


@dataclass
class TrustMetrics:
    ally_edges: float
    ally_reciprocity: float
    largest_bloc: float


def build_trust_graph(legislators: Iterable[object], min_trust: float = 0.0) -> nx.DiGraph:
    """Directed graph with an edge a -> b weighted by a's trust in b, for trust >= min_trust."""
    graph = nx.DiGraph()
    for legislator in legislators:
        graph.add_node(legislator.name, party=legislator.party, chamber=legislator.chamber)
        for other, trust in legislator.trust_levels.items():
            if trust >= min_trust:
                graph.add_edge(legislator.name, other, weight=trust)
    return graph


def trust_metrics(graph: nx.DiGraph) -> TrustMetrics:
    edges = graph.number_of_edges()
    if edges == 0:
        return TrustMetrics(ally_edges=0.0, ally_reciprocity=0.0, largest_bloc=0.0)
    ally_nodes = [n for n in graph.nodes if graph.degree(n) > 0]
    blocs = nx.weakly_connected_components(graph.subgraph(ally_nodes))
    return TrustMetrics(
        ally_edges=float(edges),
        ally_reciprocity=float(nx.reciprocity(graph)),
        largest_bloc=float(max(len(b) for b in blocs)),
    )


def compute_trust_metrics(graph: nx.DiGraph) -> Dict[str, float]:
    metrics = trust_metrics(graph)
    return {
        "ally_edges": metrics.ally_edges,
        "ally_reciprocity": metrics.ally_reciprocity,
        "largest_bloc": metrics.largest_bloc,
    }


def most_trusted(graph: nx.DiGraph, n: int = 5) -> Dict[str, float]:
    """Legislators ranked by the total trust others place in them."""
    ranked = sorted(graph.in_degree(weight="weight"), key=lambda kv: kv[1], reverse=True)
    return {name: float(score) for name, score in ranked[:n]}
