"""Trust-region policies for the Gauss-Newton optimizer.

A policy computes the step from the assembled linear system and decides
whether the resulting cost change is accepted.
"""

from abc import ABC, abstractmethod

import numpy as np

from .linear_solver import TruncatedSvdSolver


class TrustRegionPolicy(ABC):
    """Abstract base class for trust-region policies."""

    name: str = ""

    def initialize(self, j_start: float, solver: TruncatedSvdSolver) -> None:
        """Reset internal state at the start of an optimization.

        Args:
            j_start: Cost at the initial linearization point.
            solver: Linear solver with the system built.
        """
        pass

    @abstractmethod
    def compute_step(self, solver: TruncatedSvdSolver) -> np.ndarray:
        """Compute a step from the current linear system."""
        pass

    @abstractmethod
    def accept_step(
        self,
        j_old: float,
        j_new: float,
        dx: np.ndarray,
        solver: TruncatedSvdSolver,
    ) -> bool:
        """Decide whether the step is kept and update internal state."""
        pass

    @property
    def damping(self) -> float:
        """Current damping parameter (0 for undamped policies)."""
        return 0.0


class GaussNewtonTrustRegionPolicy(TrustRegionPolicy):
    """Plain Gauss-Newton: full step, always accepted."""

    name = "gauss_newton"

    def compute_step(self, solver: TruncatedSvdSolver) -> np.ndarray:
        return solver.solve_system()

    def accept_step(self, j_old, j_new, dx, solver) -> bool:
        return True


class LevenbergMarquardtTrustRegionPolicy(TrustRegionPolicy):
    """Levenberg-Marquardt damping with Nielsen's update rule.

    The damped step solves ``(J^T J + mu I) dx = -J^T e``. After each
    trial the gain ratio

        rho = (J_old - J_new) / (||e||^2 - ||e + J dx||^2)

    decides acceptance: rho > 0 shrinks mu by
    ``max(1/3, 1 - (2 rho - 1)^3)``, otherwise mu is multiplied by a
    growing factor nu.
    """

    name = "levenberg_marquardt"

    def __init__(self, tau: float = 1e-3, min_mu: float = 1e-12):
        """Initialize LM policy.

        Args:
            tau: Scale of the initial damping relative to max diag(J^T J).
            min_mu: Lower bound on the damping.
        """
        self._tau = tau
        self._min_mu = min_mu
        self._mu = 0.0
        self._nu = 2.0
        self._predicted = 0.0

    def initialize(self, j_start: float, solver: TruncatedSvdSolver) -> None:
        J = solver.jacobian
        if J.shape[1] == 0:
            diag_max = 1.0
        else:
            diag_max = float(np.max(np.asarray(J.multiply(J).sum(axis=0))))
        self._mu = max(self._tau * diag_max, self._min_mu)
        self._nu = 2.0

    def compute_step(self, solver: TruncatedSvdSolver) -> np.ndarray:
        dx = solver.solve_system(damping=self._mu)
        self._predicted = solver.predicted_decrease(dx)
        return dx

    def accept_step(self, j_old, j_new, dx, solver) -> bool:
        if self._predicted <= 0:
            rho = -1.0
        else:
            rho = (j_old - j_new) / self._predicted

        if rho > 0:
            self._mu *= max(1.0 / 3.0, 1.0 - (2.0 * rho - 1.0) ** 3)
            self._mu = max(self._mu, self._min_mu)
            self._nu = 2.0
            return True

        self._mu *= self._nu
        self._nu *= 2.0
        return False

    @property
    def damping(self) -> float:
        return self._mu


TRUST_REGION_POLICIES = {
    GaussNewtonTrustRegionPolicy.name: GaussNewtonTrustRegionPolicy,
    LevenbergMarquardtTrustRegionPolicy.name: LevenbergMarquardtTrustRegionPolicy,
}


def create_trust_region_policy(name: str) -> TrustRegionPolicy:
    """Instantiate a policy by name.

    Args:
        name: "gauss_newton" or "levenberg_marquardt".

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        return TRUST_REGION_POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"unknown trust region policy '{name}', "
            f"expected one of {sorted(TRUST_REGION_POLICIES)}"
        ) from None
