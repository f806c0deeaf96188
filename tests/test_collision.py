"""Tests for close-approach detection."""
from __future__ import annotations

import numpy as np
import pytest
from scipy.spatial import cKDTree

from debrisfield.core.collision import CollisionPair, build_index, detect, detect_brute_force
from debrisfield.core.quadtree import Rectangle


def _random_positions(n: int, seed: int, spread: float = 0.1) -> dict[str, np.ndarray]:
    rng = np.random.default_rng(seed)
    return {f"obj-{i:03d}": rng.uniform(-spread, spread, size=3) for i in range(n)}


def _oracle(positions: dict[str, np.ndarray], threshold: float) -> set[tuple[str, str]]:
    ids = list(positions)
    pairs = set()
    for i, a in enumerate(ids):
        for b in ids[i + 1:]:
            if np.linalg.norm(positions[a] - positions[b]) < threshold:
                pairs.add(tuple(sorted((a, b))))
    return pairs


class TestCollisionPair:
    def test_ids_sorted(self):
        pair = CollisionPair("b", "a", 0.1)
        assert pair.first_id == "a"
        assert pair.second_id == "b"
        assert pair.ids == ("a", "b")

    def test_unordered_equality(self):
        assert CollisionPair("a", "b", 0.1) == CollisionPair("b", "a", 0.2)
        assert len({CollisionPair("a", "b", 0.1), CollisionPair("b", "a", 0.1)}) == 1

    def test_self_pair_rejected(self):
        with pytest.raises(ValueError, match="itself"):
            CollisionPair("a", "a", 0.0)


class TestDetect:
    def test_two_object_scenario(self):
        positions = {"A": [0.0, 0.0, 0.0], "B": [0.005, 0.0, 0.0]}
        pairs = detect(positions, 0.01)
        assert len(pairs) == 1
        (pair,) = pairs
        assert pair.ids == ("A", "B")
        assert pair.distance == pytest.approx(0.005)

    def test_distance_is_three_dimensional(self):
        # identical x/y, far apart in z: surfaced by the 2D index, rejected by distance
        positions = {"A": [0.2, 0.2, 0.0], "B": [0.2, 0.2, 0.5]}
        assert detect(positions, 0.01) == set()

    def test_strictly_below_threshold(self):
        positions = {"A": [0.0, 0.0, 0.0], "B": [0.5, 0.0, 0.0]}
        assert detect(positions, 0.5) == set()
        assert len(detect(positions, 0.5000001)) == 1

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_matches_brute_force_oracle(self, seed: int):
        positions = _random_positions(20, seed)
        threshold = 0.05
        pairs = detect(positions, threshold)
        assert {p.ids for p in pairs} == _oracle(positions, threshold)
        assert pairs == detect_brute_force(positions, threshold)

    def test_matches_kdtree(self):
        positions = _random_positions(400, seed=42, spread=1.0)
        threshold = 0.08
        ids = list(positions)
        tree = cKDTree(np.array([positions[i] for i in ids]))
        expected = {tuple(sorted((ids[a], ids[b]))) for a, b in tree.query_pairs(threshold)}
        pairs = detect(positions, threshold, capacity=2)
        assert expected
        assert {p.ids for p in pairs} == expected

    def test_no_self_or_repeated_pairs(self):
        positions = _random_positions(60, seed=9, spread=0.05)
        pairs = detect(positions, 0.03)
        assert pairs
        assert all(p.first_id != p.second_id for p in pairs)
        assert len({frozenset(p.ids) for p in pairs}) == len(pairs)

    def test_reported_distance_matches(self):
        positions = _random_positions(30, seed=21)
        for pair in detect(positions, 0.06):
            expected = np.linalg.norm(positions[pair.first_id] - positions[pair.second_id])
            assert pair.distance == pytest.approx(expected)

    def test_coincident_cluster(self):
        # many identical positions exceed any subdivision; max_depth bounds the tree
        positions = {f"deb-{i}": [0.1, 0.1, 0.1] for i in range(50)}
        pairs = detect(positions, 0.01, capacity=2, max_depth=4)
        assert len(pairs) == 50 * 49 // 2
        assert all(p.distance == 0.0 for p in pairs)

    def test_zero_threshold(self):
        positions = {"A": [0.0, 0.0, 0.0], "B": [0.0, 0.0, 0.0]}
        assert detect(positions, 0.0) == set()

    @pytest.mark.parametrize("threshold", [-0.01, float("nan"), float("inf")])
    def test_invalid_threshold(self, threshold: float):
        with pytest.raises(ValueError, match="threshold"):
            detect({}, threshold)

    def test_fewer_than_two_objects(self):
        assert detect({}, 0.1) == set()
        assert detect({"A": [0.0, 0.0, 0.0]}, 0.1) == set()

    def test_invalid_positions_ignored(self, caplog: pytest.LogCaptureFixture):
        positions = {
            "A": [0.0, 0.0, 0.0],
            "B": [0.001, 0.0, 0.0],
            "C": [float("nan"), 0.0, 0.0],
        }
        pairs = detect(positions, 0.01)
        assert {p.ids for p in pairs} == {("A", "B")}
        assert any("invalid position" in r.message for r in caplog.records)


class TestBoundary:
    def test_both_outside_boundary_missed(self, caplog: pytest.LogCaptureFixture):
        positions = {"A": [1.5, 0.0, 0.0], "B": [1.505, 0.0, 0.0]}
        unit = Rectangle(0.0, 0.0, 1.0, 1.0)
        assert detect(positions, 0.01, boundary=unit) == set()
        assert len(detect_brute_force(positions, 0.01)) == 1
        assert any("outside index boundary" in r.message for r in caplog.records)

    def test_outside_object_finds_indexed_neighbour(self):
        positions = {"inside": [0.999, 0.0, 0.0], "outside": [1.004, 0.0, 0.0]}
        unit = Rectangle(0.0, 0.0, 1.0, 1.0)
        pairs = detect(positions, 0.01, boundary=unit)
        assert {p.ids for p in pairs} == {("inside", "outside")}

    def test_default_boundary_covers_geo(self):
        positions = {"geo-a": [6.6, 0.0, 0.0], "geo-b": [6.605, 0.0, 0.0]}
        assert len(detect(positions, 0.01)) == 1

    def test_build_index_reports_unindexed(self):
        coords = {"A": np.array([0.0, 0.0, 0.0]), "B": np.array([3.0, 0.0, 0.0])}
        tree, unindexed = build_index(coords, Rectangle(0.0, 0.0, 1.0, 1.0))
        assert unindexed == 1
        assert len(tree) == 1


class TestBruteForce:
    def test_two_object_scenario(self):
        pairs = detect_brute_force({"A": [0.0, 0.0, 0.0], "B": [0.005, 0.0, 0.0]}, 0.01)
        assert {(p.ids, round(p.distance, 9)) for p in pairs} == {(("A", "B"), 0.005)}

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            detect_brute_force({}, -1.0)
