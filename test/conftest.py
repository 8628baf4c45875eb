"""Pytest configuration and fixtures for incremental_calibration tests."""

import sys
from pathlib import Path
import types

# Setup package path before any imports
_package_root = Path(__file__).parent.parent.absolute()
_src_dir = _package_root / "src"


def _create_package(name: str, path: Path, parent=None):
    """Create a module/package and register it in sys.modules."""
    pkg = types.ModuleType(name)
    pkg.__path__ = [str(path)]
    pkg.__file__ = str(path / "__init__.py")
    pkg.__package__ = name
    sys.modules[name] = pkg

    if parent is not None:
        setattr(parent, name.split('.')[-1], pkg)

    return pkg


def _exec_init(pkg, path: Path):
    """Execute __init__.py for a package."""
    init_file = path / "__init__.py"
    if init_file.exists():
        code = compile(init_file.read_text(), str(init_file), 'exec')
        exec(code, pkg.__dict__)


def _setup_incremental_calibration():
    """Setup the incremental_calibration package for testing."""
    pkg_name = "incremental_calibration"

    if pkg_name in sys.modules:
        return sys.modules[pkg_name]

    # Create main package
    pkg = _create_package(pkg_name, _src_dir)

    # Register every subpackage first, they import each other
    subpkgs = []
    for subpkg_name in ["problem", "algorithms", "backend", "core", "lrf2d"]:
        subpkg_dir = _src_dir / subpkg_name
        if not subpkg_dir.exists():
            continue
        full_name = f"{pkg_name}.{subpkg_name}"
        subpkgs.append((_create_package(full_name, subpkg_dir, parent=pkg), subpkg_dir))

    # Execute subpackage __init__.py in dependency order
    for subpkg, subpkg_dir in subpkgs:
        _exec_init(subpkg, subpkg_dir)

    # Execute main package __init__.py last (after subpackages are set up)
    _exec_init(pkg, _src_dir)

    return pkg


# Setup package
_setup_incremental_calibration()


import numpy as np
import pytest

from incremental_calibration.problem import (
    EuclideanDesignVariable,
    LinearErrorTerm,
    OptimizationProblem,
)


def make_linear_batch(theta, a, y, psi_value=0.0, weight=1.0, name=None):
    """Batch with one nuisance scalar psi and one observation of theta.

    Residuals:
        psi - psi_value        (prior on the nuisance variable)
        psi + a . theta - y    (measurement)

    Args:
        theta: Shared calibration variable (group 1).
        a: Coefficients of theta.
        y: Measurement.
        psi_value: Prior value of the nuisance variable.
        weight: Square-root information of the measurement.
        name: Optional batch label.
    """
    a = np.atleast_2d(np.asarray(a, dtype=float))
    psi = EuclideanDesignVariable([psi_value], group_id=0, name="psi")
    batch = OptimizationProblem(name=name)
    batch.add_design_variable(psi)
    batch.add_design_variable(theta)
    batch.add_error_term(LinearErrorTerm([psi], [np.eye(1)], [psi_value]))
    batch.add_error_term(
        LinearErrorTerm(
            [psi, theta], [np.eye(1), a], [y],
            sqrt_information=np.array([[weight]]),
        )
    )
    return batch


@pytest.fixture
def theta():
    """Two-dimensional calibration variable in group 1."""
    return EuclideanDesignVariable(np.zeros(2), group_id=1, name="theta")


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def random_jacobian(rng):
    """Well-conditioned Jacobian (20, 6) with the last 3 columns as theta."""
    return rng.standard_normal((20, 6))
