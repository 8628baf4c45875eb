"""YAML configuration for the incremental estimator.

Example file:

    marginalized_group_id: 1
    estimator:
      info_gain_delta: 0.2
      check_validity: true
    linear_solver:
      svd_tol: -1.0
      col_norm: false
    optimizer:
      max_iterations: 20
      trust_region_policy: levenberg_marquardt

Every section is optional except ``marginalized_group_id``; missing keys
take the dataclass defaults.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .backend.linear_solver import LinearSolverOptions
from .backend.optimizer import OptimizerOptions
from .core.incremental_estimator import IncrementalEstimatorOptions

logger = logging.getLogger(__name__)

_SECTIONS = {
    "estimator": IncrementalEstimatorOptions,
    "linear_solver": LinearSolverOptions,
    "optimizer": OptimizerOptions,
}
_TOP_LEVEL_KEYS = {"marginalized_group_id", *_SECTIONS}


@dataclass
class EstimatorConfig:
    """Complete configuration of an incremental estimator.

    Attributes:
        marg_group_id: Group id of the calibration parameters.
        estimator: Estimator options.
        linear_solver: Linear solver options.
        optimizer: Optimizer options.
    """

    marg_group_id: int
    estimator: IncrementalEstimatorOptions = field(default_factory=IncrementalEstimatorOptions)
    linear_solver: LinearSolverOptions = field(default_factory=LinearSolverOptions)
    optimizer: OptimizerOptions = field(default_factory=OptimizerOptions)

    def __post_init__(self):
        if isinstance(self.marg_group_id, bool) or not isinstance(self.marg_group_id, int):
            raise ValueError(
                f"marginalized_group_id must be an integer, got {self.marg_group_id!r}"
            )


def _build_section(name: str, values: Optional[dict[str, Any]]):
    cls = _SECTIONS[name]
    if values is None:
        return cls()
    if not isinstance(values, dict):
        raise ValueError(f"section '{name}' must be a mapping, got {type(values).__name__}")

    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(
            f"unknown keys in section '{name}': {unknown}, expected a subset of {sorted(known)}"
        )
    return cls(**values)


def config_from_dict(data: dict[str, Any]) -> EstimatorConfig:
    """Build an :class:`EstimatorConfig` from a parsed mapping.

    Args:
        data: Mapping with ``marginalized_group_id`` and optional
            ``estimator``, ``linear_solver`` and ``optimizer`` sections.

    Raises:
        ValueError: On unknown keys, a missing group id or invalid values.
    """
    if not isinstance(data, dict):
        raise ValueError(f"configuration must be a mapping, got {type(data).__name__}")

    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise ValueError(
            f"unknown configuration keys: {unknown}, expected a subset of {sorted(_TOP_LEVEL_KEYS)}"
        )
    if "marginalized_group_id" not in data:
        raise ValueError("configuration must define 'marginalized_group_id'")

    return EstimatorConfig(
        marg_group_id=data["marginalized_group_id"],
        estimator=_build_section("estimator", data.get("estimator")),
        linear_solver=_build_section("linear_solver", data.get("linear_solver")),
        optimizer=_build_section("optimizer", data.get("optimizer")),
    )


def load_config(path: Union[str, Path]) -> EstimatorConfig:
    """Read an estimator configuration from a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration.
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        data = {}

    config = config_from_dict(data)
    logger.debug("Loaded estimator configuration from %s: %s", path, config)
    return config
