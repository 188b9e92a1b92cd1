"""Trajectory optimizers.

Available optimizers:
- 'gradient_descent': projected gradient descent on control cost
"""

from skstomp.planner.trajectory_optimization.solvers.base import BaseOptimizer
from skstomp.planner.trajectory_optimization.solvers.base import CancellationToken
from skstomp.planner.trajectory_optimization.solvers.base import SolverResult


def create_optimizer(optimizer_type='gradient_descent', **kwargs):
    """Create a trajectory optimizer.

    Parameters
    ----------
    optimizer_type : str
        Optimizer type. Only 'gradient_descent' is bundled.
    **kwargs
        Optimizer-specific options.

    Returns
    -------
    BaseOptimizer
        Optimizer instance.
    """
    if optimizer_type == 'gradient_descent':
        from skstomp.planner.trajectory_optimization.solvers.gradient_descent import GradientDescentOptimizer
        return GradientDescentOptimizer(**kwargs)
    else:
        raise ValueError(f"Unknown optimizer type: {optimizer_type}")


__all__ = [
    'BaseOptimizer',
    'CancellationToken',
    'SolverResult',
    'create_optimizer',
]
