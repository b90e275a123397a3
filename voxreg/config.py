"""Configuration of the matching pipeline."""

from __future__ import annotations

import warnings
from dataclasses import dataclass

__all__ = ["MatcherConfig"]

_MIN_VOXEL_SIZE = 5e-3
_NOISE_BOUND_CLAMP = 1.0

_CLAMP_HINT = (
    "Empirically, 1.0 tends to work better for large-scale maps. "
    "If you do not want to clamp these values, disable `enable_noise_bound_clamping`."
)


@dataclass(init=False)
class MatcherConfig:
    """Parameters for voxelization, descriptors, outlier pruning and the solver.

    Radii and noise bounds are derived from ``voxel_size`` and the given gains.
    Noise bounds above 1.0 are clamped to 1.0 (with a warning) unless clamping
    is disabled.
    """

    voxel_size: float
    use_voxel_sampling: bool
    use_quatro: bool
    thr_linearity: float
    num_max_corr: int
    normal_radius: float
    fpfh_radius: float
    robin_noise_bound_gain: float
    robin_noise_bound: float
    solver_noise_bound_gain: float
    solver_noise_bound: float
    use_ratio_test: bool
    robin_mode: str
    tuple_scale: float

    def __init__(
        self,
        voxel_size: float = 0.3,
        use_voxel_sampling: bool = True,
        use_quatro: bool = False,
        thr_linearity: float = 1.0,
        num_max_corr: int = 5000,
        normal_r_gain: float = 3.0,
        fpfh_r_gain: float = 5.0,
        robin_noise_bound_gain: float = 1.0,
        solver_noise_bound_gain: float = 0.75,
        enable_noise_bound_clamping: bool = True,
    ) -> None:
        if voxel_size < _MIN_VOXEL_SIZE:
            raise ValueError("Too small voxel size has been given. Please check your voxel size.")
        if robin_noise_bound_gain < solver_noise_bound_gain:
            raise ValueError(
                f"`solver_noise_bound_gain` ({solver_noise_bound_gain:f}) should be smaller than "
                f"or equal to `robin_noise_bound_gain` ({robin_noise_bound_gain:f})."
            )

        self.voxel_size = float(voxel_size)
        self.use_voxel_sampling = bool(use_voxel_sampling)
        self.use_quatro = bool(use_quatro)
        self.thr_linearity = float(thr_linearity)

        self.normal_radius = normal_r_gain * self.voxel_size
        self.fpfh_radius = fpfh_r_gain * self.voxel_size

        self.num_max_corr = int(num_max_corr)
        self.robin_noise_bound_gain = float(robin_noise_bound_gain)
        self.solver_noise_bound_gain = float(solver_noise_bound_gain)

        self.robin_noise_bound = self.voxel_size * self.robin_noise_bound_gain
        self.solver_noise_bound = self.voxel_size * self.solver_noise_bound_gain

        self.use_ratio_test = True
        self.robin_mode = "max_core"
        self.tuple_scale = 0.95

        if self.robin_noise_bound > _NOISE_BOUND_CLAMP and enable_noise_bound_clamping:
            warnings.warn(
                "Too large `robin_noise_bound` has been set. " + _CLAMP_HINT,
                RuntimeWarning,
                stacklevel=2,
            )
            self.robin_noise_bound = _NOISE_BOUND_CLAMP

        if self.solver_noise_bound > _NOISE_BOUND_CLAMP and enable_noise_bound_clamping:
            warnings.warn(
                "Too large `solver_noise_bound` has been set. " + _CLAMP_HINT,
                RuntimeWarning,
                stacklevel=2,
            )
            self.solver_noise_bound = _NOISE_BOUND_CLAMP