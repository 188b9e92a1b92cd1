"""Optimizer contract and reference optimizer.

Architecture:
- Trajectory: initial parameter matrices (linear, cubic, minimum control cost)
- Solvers: cooperative optimizers driven by the planner

Usage:
    from skstomp.planner.trajectory_optimization import (
        CancellationToken,
        create_optimizer,
    )

    optimizer = create_optimizer('gradient_descent', bounds=group.bounds)
    optimizer.configure(config)
    success, parameters = optimizer.solve(start, goal, CancellationToken())
"""

from skstomp.planner.trajectory_optimization.solvers import BaseOptimizer
from skstomp.planner.trajectory_optimization.solvers import CancellationToken
from skstomp.planner.trajectory_optimization.solvers import create_optimizer
from skstomp.planner.trajectory_optimization.solvers import SolverResult
from skstomp.planner.trajectory_optimization.trajectory import initialize_parameters


__all__ = [
    'BaseOptimizer',
    'CancellationToken',
    'SolverResult',
    'create_optimizer',
    'initialize_parameters',
]
