"""Incremental calibration package.

This package fits a nonlinear least-squares calibration problem from a
growing stream of measurement batches. Each candidate batch is tried
against the current problem, the calibration parameters are marginalized
to analyse their observability, and the batch is kept only if it carries
enough new information about them.

Based on:
    Maye, J., Furgale, P., & Siegwart, R. (2013). Self-supervised
    calibration for robotic systems. IEEE Intelligent Vehicles Symposium.
"""

__version__ = "0.1.0"
