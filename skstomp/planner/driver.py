"""Optimization driver.

:class:`StompPlanner` owns the configuration of one planning group, runs
the request resolution, hands the numeric inputs to the optimizer under
a wall-clock budget and turns the optimizer output into a time-stamped,
validated trajectory.

The budget is enforced by a :class:`TimeoutWatchdog` thread that wakes
up every ``TIMEOUT_INTERVAL`` seconds and, once the allowed planning
time is exceeded, asks the optimizer to cancel. Cancellation is
cooperative: the optimizer observes it the next time it polls its
:class:`CancellationToken`.
"""

from dataclasses import dataclass
from dataclasses import field
import enum
from logging import getLogger
import threading
import time

from skstomp.errors import CollisionError
from skstomp.errors import ConfigError
from skstomp.errors import ErrorCode
from skstomp.errors import InvalidGroupError
from skstomp.errors import OptimizerError
from skstomp.errors import PlanningCancelled
from skstomp.errors import PlanningError
from skstomp.errors import PlanningTimeout
from skstomp.planner.collision_checker import JointLimitValidityChecker
from skstomp.planner.config import get_config_data
from skstomp.planner.config import parse_config
from skstomp.planner.conversion import parameters_to_trajectory
from skstomp.planner.conversion import retime_trajectory
from skstomp.planner.resolver import RequestResolver
from skstomp.planner.time_parameterization import \
    TimeOptimalParameterization
from skstomp.planner.trajectory_optimization.solvers.base import \
    CancellationToken
from skstomp.planner.trajectory_optimization.solvers.gradient_descent import \
    GradientDescentOptimizer
from skstomp.trajectory import JointTrajectory


logger = getLogger(__name__)

DESCRIPTION = 'STOMP'
TIMEOUT_INTERVAL = 0.05


class PlannerState(enum.Enum):
    IDLE = 'idle'
    CONFIGURING = 'configuring'
    SEEDING = 'seeding'
    DIRECT_SETUP = 'direct_setup'
    SOLVING = 'solving'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    TIMED_OUT = 'timed_out'
    CANCELLED = 'cancelled'


@dataclass
class PlanResult:
    """Outcome of one :meth:`StompPlanner.solve` call.

    Attributes
    ----------
    trajectory : skstomp.trajectory.JointTrajectory
        planned trajectory, empty on failure.
    error_code : skstomp.errors.ErrorCode
    success : bool
    processing_time : float
        seconds spent in the planning attempt.
    planning_time : float
        seconds spent in the whole call.
    description : str
    message : str
        reason of a failure.
    """

    trajectory: JointTrajectory = field(default_factory=JointTrajectory)
    error_code: ErrorCode = ErrorCode.SUCCESS
    success: bool = False
    processing_time: float = 0.0
    planning_time: float = 0.0
    description: str = DESCRIPTION
    message: str = ''


class TimeoutWatchdog(object):
    """Periodic timer calling ``on_timeout`` once the budget is exceeded.

    The callback runs at most once, on the watchdog thread, after which
    the watchdog stops re-arming.

    Parameters
    ----------
    allowed_time : float
        budget in seconds, measured from ``start_time``.
    on_timeout : callable
        called without arguments when the budget is exceeded.
    period : float
        timer period in seconds.
    start_time : float or None
        ``time.perf_counter()`` reference. Defaults to the time
        :meth:`start` is called.
    """

    def __init__(self, allowed_time, on_timeout, period=TIMEOUT_INTERVAL,
                 start_time=None):
        self.allowed_time = allowed_time
        self.on_timeout = on_timeout
        self.period = period
        self.start_time = start_time
        self._stop_event = threading.Event()
        self._fired = threading.Event()
        self._thread = None

    @property
    def timed_out(self):
        return self._fired.is_set()

    def elapsed(self):
        return time.perf_counter() - self.start_time

    def start(self):
        if self.start_time is None:
            self.start_time = time.perf_counter()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def stop(self):
        self._stop_event.set()
        if (self._thread is not None
                and self._thread is not threading.current_thread()):
            self._thread.join()

    def _run(self):
        while not self._stop_event.wait(self.period):
            if self.elapsed() > self.allowed_time:
                self._fired.set()
                logger.error('Exceeded allowed time of %f, terminating',
                             self.allowed_time)
                self.on_timeout()
                return

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()


def default_optimizer_factory(group, task_config):
    return GradientDescentOptimizer.from_task_config(group, task_config)


class StompPlanner(object):
    """Planning context of one joint group.

    Parameters
    ----------
    group_name : str
        planning group.
    config : dict
        planner configuration with the 'task' and 'optimization'
        sections.
    robot_model : skstomp.model.RobotModel
        kinematic model provider.
    optimizer_factory : callable or None
        ``optimizer_factory(group, task_config) -> BaseOptimizer``.
    ik_solver : callable or None
        IK solver used by the request resolver.
    validity_checker : skstomp.planner.collision_checker.ValidityChecker
        path validity oracle. Defaults to a joint limit checker; pass
        False to disable the check.
    time_parameterization : callable or None
        ``retime(trajectory, velocity_scale) -> JointTrajectory``.
        Defaults to the group's time-optimal parameterization.
    """

    def __init__(self, group_name, config, robot_model,
                 optimizer_factory=None, ik_solver=None,
                 validity_checker=None, time_parameterization=None):
        self.name = DESCRIPTION
        self.group_name = group_name
        self.config_data = config
        self.robot_model = robot_model
        self.optimizer_factory = optimizer_factory \
            or default_optimizer_factory
        self.ik_solver = ik_solver
        if validity_checker is None:
            validity_checker = JointLimitValidityChecker(robot_model)
        self.validity_checker = validity_checker or None
        self._time_parameterization = time_parameterization

        self.state = PlannerState.IDLE
        self._token = None
        self.setup()

    def setup(self):
        """Parse the configuration and create the optimizer.

        Raises
        ------
        ConfigError
            when the group does not exist, a section is missing or a
            value is invalid. The planner is left unconfigured.
        """
        self.state = PlannerState.CONFIGURING
        self.group = None
        self.config = None
        self.task_config = None
        self.optimizer = None
        self.resolver = None
        self.time_parameterization = None
        try:
            if not self.robot_model.has_group(self.group_name):
                raise InvalidGroupError(
                    "Stomp Planning Group '{}' was not found".format(
                        self.group_name))
            group = self.robot_model.get_group(self.group_name)
            if not hasattr(self.config_data, 'get'):
                raise ConfigError('Planner configuration must be a mapping')
            if 'task' not in self.config_data:
                raise ConfigError(
                    "Stomp 'task' parameter for group '{}' is missing".format(
                        self.group_name))
            if 'optimization' not in self.config_data:
                raise ConfigError(
                    "Stomp 'optimization' parameter for group '{}' failed "
                    "to load".format(self.group_name))
            task_config = self.config_data['task']
            config = parse_config(self.config_data['optimization'],
                                  group.dof)
            try:
                optimizer = self.optimizer_factory(group, task_config)
                optimizer.configure(config)
            except ConfigError:
                raise
            except (TypeError, ValueError) as e:
                raise ConfigError(
                    "Stomp 'task' parameter for group '{}' is invalid: {}"
                    .format(self.group_name, e))
        except ConfigError as e:
            logger.error('%s', e)
            raise
        finally:
            self.state = PlannerState.IDLE

        self.group = group
        self.task_config = task_config
        self.config = config
        self.optimizer = optimizer
        self.resolver = RequestResolver(group, ik_solver=self.ik_solver)
        self.time_parameterization = self._time_parameterization \
            or TimeOptimalParameterization.from_group(group)

    def can_service_request(self, request):
        """Return True for a request this planner is designed for."""
        if request.group_name != self.group_name:
            logger.error("STOMP: Unsupported planning group '%s' requested",
                         request.group_name)
            return False
        if len(request.goal_constraints) != 1:
            logger.error('STOMP: Can only handle a single goal region.')
            return False
        if not request.goal_constraints[0].is_joint:
            logger.error('STOMP: Can only handle joint space goals.')
            return False
        return True

    def solve(self, request):
        """Plan for ``request``.

        Parameters
        ----------
        request : skstomp.request.MotionRequest

        Returns
        -------
        result : PlanResult
            a new result; failures are reported through its
            ``error_code`` rather than raised.
        """
        if self.optimizer is None:
            raise RuntimeError('{} planner for group {} is not set up'.format(
                self.name, self.group_name))
        start_time = time.perf_counter()
        result = PlanResult(description=self.name)
        token = CancellationToken()
        self._token = token

        if request.allowed_planning_time < TIMEOUT_INTERVAL:
            logger.warning('%s allowed planning time %f is less than the '
                           'minimum planning time value of %f', self.name,
                           request.allowed_planning_time, TIMEOUT_INTERVAL)
        watchdog = TimeoutWatchdog(request.allowed_planning_time,
                                   self.terminate, start_time=start_time)
        watchdog.start()
        try:
            result.trajectory = self._solve(request, token, watchdog)
        except PlanningError as e:
            logger.error('%s %s', self.name, e)
            result.error_code = e.error_code
            result.message = str(e)
            if isinstance(e, PlanningTimeout):
                self.state = PlannerState.TIMED_OUT
            elif isinstance(e, PlanningCancelled):
                self.state = PlannerState.CANCELLED
            else:
                self.state = PlannerState.FAILED
        else:
            result.success = True
            self.state = PlannerState.SUCCEEDED
        finally:
            watchdog.stop()
            self._token = None

        elapsed = time.perf_counter() - start_time
        result.processing_time = elapsed
        result.planning_time = elapsed
        if result.success:
            logger.info('%s found a valid path after %f seconds', self.name,
                        result.processing_time)
        return result

    def _solve(self, request, token, watchdog):
        if request.group_name and request.group_name != self.group_name:
            raise InvalidGroupError(
                "Request group '{}' does not match planner group '{}'"
                .format(request.group_name, self.group_name))
        config = self.config.copy()

        if request.has_seed:
            logger.info('%s Seeding trajectory from MotionPlanRequest',
                        self.name)
            self.state = PlannerState.SEEDING
        else:
            self.state = PlannerState.DIRECT_SETUP
        resolved = self.resolver.resolve(request)
        if resolved.use_seed:
            config.num_timesteps = resolved.parameters.shape[1]

        self.optimizer.configure(config)
        self.optimizer.set_motion_plan_request(resolved.request)
        self.state = PlannerState.SOLVING
        if resolved.use_seed:
            outcome = self.optimizer.solve_with_seed(resolved.parameters,
                                                     token)
        else:
            outcome = self.optimizer.solve(resolved.start, resolved.goal,
                                           token)
        watchdog.stop()

        success, parameters = outcome
        if not success:
            if watchdog.timed_out:
                raise PlanningTimeout(
                    'Optimization exceeded the allowed planning time of '
                    '{}'.format(request.allowed_planning_time))
            if token.cancelled:
                raise PlanningCancelled('Optimization was terminated')
            raise OptimizerError('Optimizer failed to find a trajectory')

        trajectory = parameters_to_trajectory(parameters,
                                              self.group.joint_names)
        trajectory = retime_trajectory(
            trajectory, request.max_velocity_scaling_factor,
            self.time_parameterization)

        if (self.validity_checker is not None
                and not self.validity_checker.is_path_valid(
                    trajectory, self.group_name)):
            raise CollisionError('Trajectory is in collision')
        return trajectory

    def terminate(self):
        """Request cooperative cancellation of the running solve.

        Returns
        -------
        success : bool
            False when neither a running solve nor the optimizer could
            be interrupted.
        """
        if self.optimizer is None:
            return True
        token = self._token
        if token is not None:
            token.cancel()
        if self.optimizer.cancel():
            return True
        if token is not None:
            # the solve observes the token once the optimizer starts
            return True
        logger.error('Failed to interrupt %s', self.name)
        return False

    def clear(self):
        """Reset the optimizer state for reuse."""
        if self.optimizer is None:
            raise RuntimeError('{} planner for group {} is not set up'.format(
                self.name, self.group_name))
        self.optimizer.clear()
        self.state = PlannerState.IDLE


def load_planners(robot_model, params, **kwargs):
    """Create one :class:`StompPlanner` per configured planning group.

    Parameters
    ----------
    robot_model : skstomp.model.RobotModel
    params : dict
        entries carrying 'group_name', 'task' and 'optimization'.
    **kwargs
        passed to every :class:`StompPlanner`.

    Returns
    -------
    planners : dict[str, StompPlanner]
    """
    planners = {}
    for group_name, config in get_config_data(params).items():
        planners[group_name] = StompPlanner(group_name, config, robot_model,
                                            **kwargs)
    return planners
