"""Tests for the 3D projection of item embeddings and similarity edges."""

import math

import numpy as np
import pytest

from spark_engine.core.projection import build_edges, cosine_similarity, pca_project, project


def _random_embeddings(n: int, dim: int = 32, seed: int = 0) -> list[list[float]]:
    rng = np.random.default_rng(seed)
    return rng.normal(size=(n, dim)).tolist()


class TestPcaProject:
    def test_empty(self):
        assert pca_project([]) == []

    def test_single_item_at_origin(self):
        assert pca_project([[0.3, 0.1, 0.9]]) == [(0.0, 0.0, 0.0)]

    def test_identical_items_at_origin(self):
        positions = pca_project([[1.0, 2.0], [1.0, 2.0], [1.0, 2.0]])
        assert all(p == (0.0, 0.0, 0.0) for p in positions)

    def test_rescaled_to_visual_bound(self):
        positions = pca_project(_random_embeddings(12), seed=7)
        max_abs = max(abs(c) for p in positions for c in p)
        assert max_abs == pytest.approx(3.0)
        assert len(positions) == 12

    def test_two_items_use_one_axis(self):
        positions = pca_project([[0.0, 0.0], [1.0, 1.0]], seed=7)
        assert positions[0][2] == 0.0
        assert positions[0][0] == pytest.approx(-positions[1][0])
        assert abs(positions[0][0]) == pytest.approx(3.0)

    def test_seed_is_deterministic(self):
        embeddings = _random_embeddings(6)
        assert pca_project(embeddings, seed=3) == pca_project(embeddings, seed=3)


class TestEdges:
    def test_cosine_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_edge_exactly_at_threshold(self):
        # Cosine similarity of these two is exactly 0.5
        embeddings = [[1.0, 1.0, 0.0, 0.0], [1.0, 0.0, 1.0, 0.0]]
        assert cosine_similarity(*embeddings) == 0.5
        assert build_edges(["a", "b"], embeddings, threshold=0.5) == []

    def test_edge_above_threshold(self):
        edges = build_edges(["a", "b", "c"], [[1.0, 0.0], [1.0, 0.1], [0.0, 1.0]], threshold=0.5)
        assert len(edges) == 1
        edge = edges[0]
        assert (edge.from_, edge.to) == ("a", "b")
        assert edge.similarity == pytest.approx(1.0 / math.sqrt(1.01))

    def test_edge_serializes_with_from_key(self):
        edge = build_edges(["a", "b"], [[1.0, 0.0], [1.0, 0.0]])[0]
        assert edge.model_dump(by_alias=True) == {"from": "a", "to": "b", "similarity": pytest.approx(1.0)}


class TestProject:
    def test_no_embeddings(self):
        response = project([{"id": "a", "embedding": None}])
        assert response.items == []
        assert response.edges == []

    def test_points_carry_item_fields(self):
        items = [
            {"id": "a", "type": "note", "title": "Intro to pgvector", "summary": None, "embedding": [1.0, 0.0, 0.0]},
            {"id": "b", "type": "note", "title": "HNSW indexes", "summary": None, "embedding": [0.9, 0.1, 0.0]},
            {"id": "c", "type": "note", "title": "Quarterly marketing plan", "summary": None, "embedding": [0.0, 0.0, 1.0]},
        ]
        response = project(items)

        assert [p.id for p in response.items] == ["a", "b", "c"]
        assert response.items[0].title == "Intro to pgvector"
        assert [(e.from_, e.to) for e in response.edges] == [("a", "b")]

    def test_mixed_dimensions_dropped(self):
        items = [
            {"id": "a", "embedding": [1.0, 0.0]},
            {"id": "b", "embedding": [0.0, 1.0]},
            {"id": "c", "embedding": [1.0, 0.0, 0.0]},
        ]
        response = project(items)
        assert {p.id for p in response.items} == {"a", "b"}
