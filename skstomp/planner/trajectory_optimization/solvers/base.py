"""Optimizer contract used by the planner.

An optimizer is configured once per plan with an
:class:`~skstomp.planner.config.OptimizationConfig` and then solved
either from a start/goal pair or from a seed parameter matrix. Solving
is cancelled cooperatively: the optimizer receives a
:class:`CancellationToken` and must poll it at least once per iteration.
"""

from abc import ABC
from abc import abstractmethod
import threading

import numpy as np

from skstomp.planner.trajectory_optimization.trajectory import \
    initialize_parameters


class CancellationToken(object):
    """Monotone, thread-safe cancellation flag.

    Once cancelled a token stays cancelled; cancelling twice is a no-op.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def __bool__(self):
        return self.cancelled

    def __repr__(self):
        return '<CancellationToken cancelled={}>'.format(self.cancelled)


class SolverResult:
    """Result of trajectory optimization.

    Attributes
    ----------
    parameters : ndarray
        Optimized parameter matrix (n_dimensions, n_timesteps).
    success : bool
        Whether optimization succeeded.
    cost : float
        Final cost value.
    iterations : int
        Number of iterations.
    cancelled : bool
        Whether the cancellation token was observed.
    message : str
        Status message.
    """

    def __init__(
        self,
        parameters,
        success=True,
        cost=0.0,
        iterations=0,
        cancelled=False,
        message='',
    ):
        self.parameters = np.asarray(parameters)
        self.success = success
        self.cost = cost
        self.iterations = iterations
        self.cancelled = cancelled
        self.message = message

    def __iter__(self):
        # allows ``success, parameters = optimizer.solve(...)``
        return iter((self.success, self.parameters))


class BaseOptimizer(ABC):
    """Abstract base class of cooperative trajectory optimizers.

    Subclasses implement :meth:`optimize`, which must poll the token it
    receives at bounded intervals and return early once it is cancelled.
    """

    def __init__(self, verbose=False):
        self.verbose = verbose
        self.config = None
        self.request = None
        self._token = None
        self._lock = threading.Lock()

    def configure(self, config):
        """Bind an OptimizationConfig used by the next solves."""
        self.config = config

    def set_motion_plan_request(self, request):
        """Expose the (resolved) motion request to cost functions."""
        self.request = request

    @property
    def running(self):
        return self._token is not None

    def solve(self, start, goal, cancel_token=None):
        """Optimize from a start and goal joint vector.

        The initial parameter matrix is built with the configured
        initialization method and ``num_timesteps`` columns.

        Returns
        -------
        SolverResult
        """
        config = self._require_config()
        initial_parameters = initialize_parameters(
            config.initialization_method, start, goal,
            config.num_timesteps)
        return self._run(initial_parameters, cancel_token)

    def solve_with_seed(self, initial_parameters, cancel_token=None):
        """Optimize starting from a seed parameter matrix.

        Returns
        -------
        SolverResult
        """
        self._require_config()
        return self._run(np.array(initial_parameters, dtype=np.float64),
                         cancel_token)

    def cancel(self):
        """Request cancellation of the running solve.

        Returns
        -------
        cancelled : bool
            False when no solve is running.
        """
        with self._lock:
            if self._token is None:
                return False
            self._token.cancel()
            return True

    def clear(self):
        """Reset internal state so that the optimizer can be reused."""
        with self._lock:
            self._token = None
        self.request = None

    @abstractmethod
    def optimize(self, initial_parameters, cancel_token):
        """Optimize ``initial_parameters`` (n_dimensions, n_timesteps).

        Returns
        -------
        SolverResult
        """
        pass

    def _require_config(self):
        if self.config is None:
            raise RuntimeError('optimizer is not configured')
        return self.config

    def _validate_parameters(self, parameters):
        parameters = np.asarray(parameters)
        expected_rows = self.config.num_dimensions
        if parameters.ndim != 2 or parameters.shape[0] != expected_rows:
            raise ValueError(
                f"Parameter shape {parameters.shape} does not have "
                f"{expected_rows} rows"
            )
        return parameters

    def _run(self, initial_parameters, cancel_token):
        if cancel_token is None:
            cancel_token = CancellationToken()
        initial_parameters = self._validate_parameters(initial_parameters)
        with self._lock:
            self._token = cancel_token
        try:
            return self.optimize(initial_parameters, cancel_token)
        finally:
            with self._lock:
                self._token = None
