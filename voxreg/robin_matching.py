"""Feature matching with mutual cross-checking and graph-based outlier pruning."""

from __future__ import annotations

import time
from enum import Enum

import networkx as nx
import numpy as np
from scipy.spatial import cKDTree

__all__ = [
    "RobinMode",
    "RobinMatching",
    "build_compatibility_graph",
    "find_inlier_structure",
]

# Descriptor pairs farther apart than this are never matched.
_THR_DIST = 30.0
_SQR_THR_DIST = _THR_DIST * _THR_DIST
# Lowe-style ratio threshold; the lower, the stricter.
_THR_RATIO_TEST = 0.9
# Each correspondence gets this many random triplet trials in the tuple test.
_TUPLE_TRIALS_PER_CORR = 100


class RobinMode(str, Enum):
    """How correspondences are pruned after cross-checking."""

    NONE = "None"
    MAX_CORE = "max_core"
    MAX_CLIQUE = "max_clique"


def _as_points(points, name: str) -> np.ndarray:
    arr = np.asarray(points, dtype=np.float64)
    if arr.size == 0:
        return np.zeros((0, 3), dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"`{name}` must be an (N, 3) array, got shape {arr.shape}")
    return arr


def _as_features(features, name: str) -> np.ndarray:
    arr = np.asarray(features, dtype=np.float32)
    if arr.ndim != 2 or arr.shape[0] == 0:
        raise ValueError(f"`{name}` must be a non-empty (N, D) array of descriptors")
    return arr


def build_compatibility_graph(src, tgt, noise_bound: float) -> nx.Graph:
    """Graph over correspondences ``i`` where an edge joins mutually consistent pairs.

    ``src`` and ``tgt`` are (N, 3) arrays whose rows correspond. Two
    correspondences ``i`` and ``j`` are consistent when the distance between
    ``src[i]`` and ``src[j]`` differs from that between ``tgt[i]`` and
    ``tgt[j]`` by at most ``2 * noise_bound`` (a rigid motion keeps distances).
    """
    src_arr = _as_points(src, "src")
    tgt_arr = _as_points(tgt, "tgt")
    if len(src_arr) != len(tgt_arr):
        raise ValueError("`src` and `tgt` must hold the same number of points")

    threshold = 2.0 * noise_bound
    graph = nx.Graph()
    graph.add_nodes_from(range(len(src_arr)))
    for i in range(len(src_arr) - 1):
        d_src = np.linalg.norm(src_arr[i + 1:] - src_arr[i], axis=1)
        d_tgt = np.linalg.norm(tgt_arr[i + 1:] - tgt_arr[i], axis=1)
        neighbours = np.flatnonzero(np.abs(d_src - d_tgt) <= threshold) + i + 1
        graph.add_edges_from((i, int(j)) for j in neighbours)
    return graph


def find_inlier_structure(graph: nx.Graph, mode) -> list[int]:
    """Sorted nodes of the maximum k-core or of a maximum clique of ``graph``."""
    mode = RobinMode(mode)
    if graph.number_of_nodes() == 0:
        return []
    if mode is RobinMode.MAX_CORE:
        nodes = nx.k_core(graph).nodes
    elif mode is RobinMode.MAX_CLIQUE:
        nodes, _ = nx.max_weight_clique(graph, weight=None)
    else:
        raise ValueError(f"no inlier structure for mode {mode.value!r}")
    return sorted(int(n) for n in nodes)


class RobinMatching:
    """Match descriptors between two clouds and prune geometrically inconsistent pairs.

    Correspondences are returned as ``(source_index, target_index)`` pairs.
    The attributes ``rejection_time``, ``num_initial_correspondences`` and
    ``num_pruned_correspondences`` describe the last run. Randomness (used for
    the tuple test and for subsampling without the ratio test) comes from
    ``self.rng``, which may be replaced with a seeded generator.
    """

    def __init__(self, noise_bound: float, num_max_corr: int = 5000,
                 tuple_scale: float = 0.95) -> None:
        self.noise_bound = float(noise_bound)
        self.num_max_corr = int(num_max_corr)
        self.tuple_test_ratio = float(tuple_scale)
        self.rng = np.random.default_rng()

        self.rejection_time = 0.0
        self.num_initial_correspondences = 0
        self.num_pruned_correspondences = 0

        self._clouds: list[np.ndarray] = []
        self._features: list[np.ndarray] = []
        self._fi = 0
        self._fj = 1
        self._swapped = False
        self._cross_checked: list[tuple[int, int]] = []
        self._corres: list[tuple[int, int]] = []

    def establish_correspondences(self, source_points, target_points, source_features,
                                  target_features, robin_mode="max_core",
                                  tuple_scale: float = 0.95,
                                  use_ratio_test: bool = False) -> list[tuple[int, int]]:
        """Cross-check descriptor matches, prune them and return the survivors."""
        mode = RobinMode(robin_mode)
        src = _as_points(source_points, "source_points")
        tgt = _as_points(target_points, "target_points")
        src_feat = _as_features(source_features, "source_features")
        tgt_feat = _as_features(target_features, "target_features")
        if len(src_feat) != len(src) or len(tgt_feat) != len(tgt):
            raise ValueError("each cloud needs exactly one descriptor per point")

        self._clouds = [src, tgt]
        self._features = [src_feat, tgt_feat]
        self._cross_checked = []
        self._corres = []
        self._set_statuses()
        self._match(mode, tuple_scale, use_ratio_test)
        return list(self._corres)

    def apply_outlier_pruning(self, src_matched, tgt_matched,
                              robin_mode="max_core") -> list[int]:
        """Indices of the already-matched pairs that survive graph-based pruning."""
        mode = RobinMode(robin_mode)
        if mode is RobinMode.NONE:
            raise ValueError("outlier pruning needs 'max_core' or 'max_clique'")
        src = _as_points(src_matched, "src_matched")
        tgt = _as_points(tgt_matched, "tgt_matched")
        if len(src) != len(tgt):
            raise ValueError("The size of `src_matched` and `tgt_matched` should be same.")

        self.num_initial_correspondences = len(src)
        graph = build_compatibility_graph(src, tgt, self.noise_bound)
        indices = find_inlier_structure(graph, mode)
        self.num_pruned_correspondences = len(indices)
        return indices

    def cross_checked_correspondences(self) -> list[tuple[int, int]]:
        """Mutually nearest descriptor pairs before pruning, as (source, target)."""
        if self._swapped:
            return [(j, i) for i, j in self._cross_checked]
        return list(self._cross_checked)

    def final_correspondences(self) -> list[tuple[int, int]]:
        """Pairs that survived pruning in the last run, as (source, target)."""
        return list(self._corres)

    def _set_statuses(self) -> None:
        self._fi, self._fj = 0, 1
        self._swapped = False
        if len(self._clouds[1]) > len(self._clouds[0]):
            self._fi, self._fj = 1, 0
            self._swapped = True

    def _oriented(self, pairs) -> list[tuple[int, int]]:
        if self._swapped:
            return [(int(j), int(i)) for i, j in pairs]
        return [(int(i), int(j)) for i, j in pairs]

    def _match(self, mode: RobinMode, tuple_scale: float, use_ratio_test: bool) -> None:
        feats_i = self._features[self._fi]
        feats_j = self._features[self._fj]
        n_i = len(feats_i)
        tree_i = cKDTree(feats_i)
        tree_j = cKDTree(feats_j)

        num_candidates = 2 if use_ratio_test else 1
        dist, idx = tree_i.query(feats_j, k=list(range(1, num_candidates + 1)))
        sq = np.square(dist)
        d0 = sq[:, 0]
        nn_i = idx[:, 0]

        keep = (d0 <= _SQR_THR_DIST) & (nn_i < n_i)
        if use_ratio_test:
            keep &= ~(d0 > _THR_RATIO_TEST * sq[:, 1])

        i_to_j = np.full(n_i, -1, dtype=np.int64)
        candidates = np.unique(nn_i[keep])
        if candidates.size:
            _, back = tree_j.query(feats_i[candidates], k=1)
            i_to_j[candidates] = back

        js = np.flatnonzero(keep)
        js = js[i_to_j[nn_i[js]] == js]
        pairs = np.column_stack((nn_i[js], js)).astype(np.int64)

        if len(pairs) > self.num_max_corr:
            if use_ratio_test:
                d1 = sq[js, 1]
                with np.errstate(divide="ignore", invalid="ignore"):
                    ratios = np.where(d1 > 0, d0[js] / d1, 0.0)
                order = np.argsort(ratios, kind="stable")
                pairs = pairs[order[: self.num_max_corr]]
            else:
                chosen = self.rng.choice(len(pairs), size=self.num_max_corr, replace=False)
                pairs = pairs[chosen]

        self._cross_checked = [(int(i), int(j)) for i, j in pairs]

        start = time.perf_counter()
        if mode is RobinMode.NONE:
            self._corres = self._run_tuple_test(self._cross_checked)
        else:
            self._corres = self._prune_pairs(self._cross_checked, mode)
        self.rejection_time = time.perf_counter() - start

    def _run_tuple_test(self, corres: list[tuple[int, int]]) -> list[tuple[int, int]]:
        if not corres:
            return []
        pairs = np.asarray(corres, dtype=np.int64)
        ncorr = len(pairs)
        draws = self.rng.integers(0, ncorr, size=(ncorr * _TUPLE_TRIALS_PER_CORR, 3))

        pts_i = self._clouds[self._fi][pairs[draws, 0]]
        pts_j = self._clouds[self._fj][pairs[draws, 1]]

        def side_lengths(p: np.ndarray) -> np.ndarray:
            return np.stack(
                (
                    np.linalg.norm(p[:, 0] - p[:, 1], axis=1),
                    np.linalg.norm(p[:, 1] - p[:, 2], axis=1),
                    np.linalg.norm(p[:, 2] - p[:, 0], axis=1),
                ),
                axis=1,
            )

        li = side_lengths(pts_i)
        lj = side_lengths(pts_j)
        thr = self.noise_bound
        consistent = np.all((li - thr <= lj) & (lj <= li + thr), axis=1)

        accepted = draws[consistent].ravel()
        if accepted.size == 0:
            return []
        unique, first_seen = np.unique(accepted, return_index=True)
        included = unique[np.argsort(first_seen)]
        return self._oriented(pairs[included])

    def _prune_pairs(self, corres: list[tuple[int, int]],
                     mode: RobinMode) -> list[tuple[int, int]]:
        if not corres:
            return []
        pairs = np.asarray(corres, dtype=np.int64)
        src = self._clouds[self._fi][pairs[:, 0]]
        tgt = self._clouds[self._fj][pairs[:, 1]]
        graph = build_compatibility_graph(src, tgt, self.noise_bound)
        indices = find_inlier_structure(graph, mode)
        self.num_initial_correspondences = len(pairs)
        self.num_pruned_correspondences = len(indices)
        return self._oriented(pairs[indices])