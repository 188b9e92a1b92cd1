"""Gradient descent trajectory optimizer.

A simple cooperative optimizer minimizing

    control_cost_weight * sum_j theta_j^T R theta_j / delta_t^4
    + ||theta - theta_init||^2 + user cost

over the interior columns of the parameter matrix, where ``R`` is the
finite-difference acceleration matrix. It is a reference implementation
of the optimizer contract, not a sampling based optimizer.
"""

from logging import getLogger

import numpy as np

from skstomp.errors import ConfigError
from skstomp.planner.trajectory_optimization.solvers.base import BaseOptimizer
from skstomp.planner.trajectory_optimization.solvers.base import SolverResult
from skstomp.planner.trajectory_optimization.trajectory import \
    control_cost_matrix


logger = getLogger(__name__)


class GradientDescentOptimizer(BaseOptimizer):
    """Projected gradient descent with fixed endpoints.

    The cancellation token is polled once per iteration.

    Parameters
    ----------
    bounds : numpy.ndarray (n_dimensions, 2) or None
        joint bounds every iterate is clipped to.
    cost_fn : callable or None
        ``cost_fn(parameters) -> (cost, gradient)`` added to the
        built-in costs.
    validity_fn : callable or None
        ``validity_fn(parameters) -> bool``. When given, the solve
        succeeds only with a valid result and stops
        ``num_iterations_after_valid`` iterations after the first valid
        iterate.
    learning_rate : float or None
        step size. Derived from the cost curvature when None.
    max_grad_norm : float
        maximum gradient norm for clipping.
    """

    def __init__(
        self,
        bounds=None,
        cost_fn=None,
        validity_fn=None,
        learning_rate=None,
        max_grad_norm=100.0,
        verbose=False,
    ):
        super().__init__(verbose=verbose)
        self.bounds = None if bounds is None else np.asarray(bounds)
        self.cost_fn = cost_fn
        self.validity_fn = validity_fn
        self.learning_rate = learning_rate
        self.max_grad_norm = max_grad_norm

    @classmethod
    def from_task_config(cls, group, task_config):
        """Create an optimizer for ``group`` from the planner 'task' section.

        Recognized keys are ``learning_rate`` and ``max_grad_norm``.

        Raises
        ------
        ConfigError
            when a value is not a positive number.
        """
        task_config = task_config or {}
        if not hasattr(task_config, 'get'):
            raise ConfigError('task parameters must be a mapping, got {}'
                              .format(type(task_config).__name__))
        kwargs = {}
        for key in ('learning_rate', 'max_grad_norm'):
            if key not in task_config:
                continue
            try:
                value = float(task_config[key])
            except (TypeError, ValueError) as e:
                raise ConfigError('Invalid value {!r} for {}: {}'.format(
                    task_config[key], key, e))
            if not value > 0.0:
                raise ConfigError('{} must be positive, got {}'.format(
                    key, value))
            kwargs[key] = value
        return cls(bounds=group.bounds, **kwargs)

    def _cost(self, parameters, initial_parameters, R, control_weight):
        diff = parameters - initial_parameters
        cost = control_weight * np.sum(parameters.dot(R) * parameters) \
            + np.sum(diff ** 2)
        grad = 2.0 * control_weight * parameters.dot(R) + 2.0 * diff
        if self.cost_fn is not None:
            user_cost, user_grad = self.cost_fn(parameters)
            cost += user_cost
            grad = grad + user_grad
        return cost, grad

    def optimize(self, initial_parameters, cancel_token):
        config = self.config
        parameters = np.array(initial_parameters, dtype=np.float64)
        n_timesteps = parameters.shape[1]
        R = control_cost_matrix(n_timesteps)
        control_weight = config.control_cost_weight / config.delta_t ** 4

        learning_rate = self.learning_rate
        if learning_rate is None:
            # ||R|| <= 16, so this keeps the quadratic part stable
            learning_rate = 0.5 / (16.0 * control_weight + 1.0)

        if self.bounds is not None:
            lower = self.bounds[:, 0:1]
            upper = self.bounds[:, 1:2]
        start = parameters[:, 0].copy()
        goal = parameters[:, -1].copy()

        best = parameters.copy()
        best_cost, _ = self._cost(parameters, initial_parameters, R,
                                  control_weight)
        valid_countdown = None
        iteration = 0
        for iteration in range(1, config.num_iterations + 1):
            if cancel_token.cancelled:
                logger.info('Optimization cancelled at iteration %d',
                            iteration)
                return SolverResult(best, success=False, cost=best_cost,
                                    iterations=iteration - 1,
                                    cancelled=True,
                                    message='cancelled')
            cost, grad = self._cost(parameters, initial_parameters, R,
                                    control_weight)
            grad_norm = np.sqrt(np.sum(grad ** 2) + 1e-10)
            if grad_norm > self.max_grad_norm:
                grad = grad * (self.max_grad_norm / grad_norm)
            parameters = parameters - learning_rate * grad
            if self.bounds is not None:
                parameters = np.clip(parameters, lower, upper)
            parameters[:, 0] = start
            parameters[:, -1] = goal

            new_cost, _ = self._cost(parameters, initial_parameters, R,
                                     control_weight)
            if new_cost < best_cost:
                best, best_cost = parameters.copy(), new_cost
            if self.verbose:
                logger.info('iteration %d cost %f', iteration, new_cost)

            if self.validity_fn is not None:
                if valid_countdown is None and self.validity_fn(best):
                    valid_countdown = config.num_iterations_after_valid
                if valid_countdown is not None:
                    if valid_countdown <= 0:
                        break
                    valid_countdown -= 1

        success = True
        message = 'Gradient descent completed'
        if self.validity_fn is not None and not self.validity_fn(best):
            success = False
            message = 'No valid trajectory found'
        return SolverResult(best, success=success, cost=float(best_cost),
                            iterations=iteration, message=message)
