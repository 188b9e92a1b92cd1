"""Resolution of symbolic motion requests into numeric optimizer inputs.

A request is resolved in exactly one of two modes:

seed mode
    the request carries ``trajectory_constraints``. They are converted to
    a parameter matrix (joint-space waypoints are copied, cartesian
    waypoints go through IK chained on the previous waypoint), the
    endpoints are checked against the declared start and goal and
    snapped to them, and the interior is smoothed.

direct mode
    no seed. The start comes from the start state (or from IK of
    ``start_pose`` when the goal region is cartesian) and the goal from
    the first usable goal constraint.

Errors of either mode are raised as :mod:`skstomp.errors` exceptions;
seed errors never fall back to direct mode.
"""

from logging import getLogger

import numpy as np

from skstomp.errors import ChainTopologyError
from skstomp.errors import GoalDiscrepancyError
from skstomp.errors import GoalOutOfBoundsError
from skstomp.errors import GoalUnresolvedError
from skstomp.errors import IKFailure
from skstomp.errors import InvalidRobotStateError
from skstomp.errors import SeedDimensionError
from skstomp.errors import SeedFormatError
from skstomp.errors import SeedTooShortError
from skstomp.errors import StartDiscrepancyError
from skstomp.errors import StartOutOfBoundsError
from skstomp.planner.kinematics import IKSolver
from skstomp.planner.smoothing import apply_polynomial_smoothing
from skstomp.planner.smoothing import JOINT_LIMIT_MARGIN
from skstomp.planner.smoothing import POLYNOMIAL_ORDER
from skstomp.request import Constraints
from skstomp.request import ResolvedRequest


logger = getLogger(__name__)

MAX_START_DISTANCE_THRESH = 0.5
MIN_SEED_TIMESTEPS = 3


def within_tolerance(a, b, tol):
    """Return True when the L1 distance between ``a`` and ``b`` is <= ``tol``."""
    dist = np.sum(np.abs(np.asarray(a) - np.asarray(b)))
    return bool(dist <= tol)


class RequestResolver(object):
    """Resolve motion requests of one joint group.

    Parameters
    ----------
    group : skstomp.model.JointGroup
        planning group.
    ik_solver : callable or None
        ``ik_solver(pose, group, hint) -> q`` raising IKFailure on failure.
        Defaults to :class:`skstomp.planner.kinematics.IKSolver`.
    distance_threshold : float
        L1 tolerance between the seed endpoints and the declared start
        and goal.
    poly_order : int
        order of the seed smoothing polynomial.
    joint_limit_margin : float
        margin of the seed smoothing bound enforcement.
    """

    def __init__(self, group, ik_solver=None,
                 distance_threshold=MAX_START_DISTANCE_THRESH,
                 poly_order=POLYNOMIAL_ORDER,
                 joint_limit_margin=JOINT_LIMIT_MARGIN):
        self.group = group
        self.ik_solver = ik_solver if ik_solver is not None else IKSolver()
        self.distance_threshold = distance_threshold
        self.poly_order = poly_order
        self.joint_limit_margin = joint_limit_margin

    def resolve(self, request):
        """Resolve ``request`` in seed mode if it has a seed, else directly.

        Returns
        -------
        resolved : skstomp.request.ResolvedRequest
        """
        if request.has_seed:
            return self.resolve_seed(request)
        return self.resolve_start_and_goal(request)

    # ------------------------------------------------------------------
    # shared helpers

    def declared_start(self, request):
        """Start joint vector of the group taken from the start state."""
        try:
            return request.start_state.joint_vector(self.group.joint_names)
        except KeyError as e:
            raise InvalidRobotStateError(
                'Start state has no value for joint {}'.format(e))

    def _ik(self, pose, hint=None):
        return np.asarray(self.ik_solver(pose, self.group, hint),
                          dtype=np.float64)

    def _joint_goal(self, constraints, base):
        goal = np.array(base, dtype=np.float64)
        index = {name: i for i, name in enumerate(self.group.joint_names)}
        for jc in constraints.joint_constraints:
            if jc.joint_name in index:
                goal[index[jc.joint_name]] = jc.position
        return goal

    def scan_goal(self, goal_constraints, base):
        """Return the first goal entry that resolves within the bounds.

        Entries are visited in order. A joint-valued entry overwrites
        ``base`` for the joints it names; a cartesian entry is solved by
        IK without hint. Entries failing IK or violating the bounds are
        skipped. An entry carrying both joint and cartesian constraints
        is treated as joint-valued.

        Returns
        -------
        goal : numpy.ndarray (dof,) or None
            None when no entry qualifies.
        """
        for i, gc in enumerate(goal_constraints):
            if gc.is_joint:
                goal = self._joint_goal(gc, base)
                if not self.group.satisfies_bounds(goal):
                    logger.error('Requested goal %d joint pose is out of '
                                 'bounds', i)
                    continue
                logger.debug('Found goal from joint constraints of '
                             'entry %d', i)
                return goal
            if gc.is_cartesian:
                try:
                    goal = self._ik(gc.pose())
                except (IKFailure, ChainTopologyError) as e:
                    logger.warning('Goal %d could not be solved by IK: %s',
                                   i, e)
                    continue
                if not self.group.satisfies_bounds(goal):
                    logger.error('IK solution of goal %d is out of bounds', i)
                    continue
                logger.debug('Found goal from cartesian constraints of '
                             'entry %d', i)
                return goal
        return None

    # ------------------------------------------------------------------
    # seed mode

    def is_cartesian_seed(self, request):
        """Classify the seed from its first waypoint."""
        first = request.trajectory_constraints[0]
        if first.is_joint:
            return False
        if first.is_cartesian:
            return True
        raise SeedFormatError(
            'First seed waypoint has neither joint constraints nor a '
            'position and orientation constraint')

    def extract_joint_seed(self, request):
        """Parameter matrix of a joint-space seed."""
        names = self.group.joint_names
        dof = len(names)
        seed = request.trajectory_constraints
        parameters = np.zeros((dof, len(seed)))
        for i, waypoint in enumerate(seed):
            n = len(waypoint.joint_constraints)
            if n != dof:
                raise SeedDimensionError(
                    'Seed trajectory index {} does not have {} constraints '
                    '(has {} instead)'.format(i, dof, n), index=i)
            for j, jc in enumerate(waypoint.joint_constraints):
                if jc.joint_name != names[j]:
                    raise SeedDimensionError(
                        "Seed trajectory (index {}, joint {}) joint name "
                        "'{}' does not match expected name '{}'".format(
                            i, j, jc.joint_name, names[j]), index=i)
                parameters[j, i] = jc.position
        return parameters

    def _seed_poses(self, request):
        poses = []
        for i, waypoint in enumerate(request.trajectory_constraints):
            n_pos = len(waypoint.position_constraints)
            if (not waypoint.is_cartesian or waypoint.is_joint
                    or n_pos != len(waypoint.orientation_constraints)):
                raise SeedFormatError(
                    'Cartesian seed waypoint {} needs matching position and '
                    'orientation constraints only'.format(i))
            poses.extend(waypoint.pose(k) for k in range(n_pos))
        return poses

    def extract_cartesian_seed(self, request):
        """Parameter matrix of a cartesian seed.

        Every pose is solved with the previous column as IK hint, the
        first one without hint. A pose failing IK is not fatal: its
        column repeats the previous one (the declared start, or the
        middle of the bounds, for the first pose) and the failure is
        counted.

        Returns
        -------
        parameters : numpy.ndarray (dof, n_poses)
        fail_count : int
        """
        poses = self._seed_poses(request)
        parameters = np.zeros((self.group.dof, len(poses)))
        fail_count = 0
        previous = None
        for i, pose in enumerate(poses):
            try:
                q = self._ik(pose, hint=previous)
            except IKFailure:
                fail_count += 1
                logger.error('Failed to solve IK of cartesian seed at '
                             'step %d', i)
                q = previous if previous is not None \
                    else self._fallback_configuration(request)
            parameters[:, i] = q
            previous = q
        logger.warning('Seed trajectory converted with a total of %d/%d IK '
                       'failures', fail_count, len(poses))
        return parameters, fail_count

    def _fallback_configuration(self, request):
        try:
            return self.declared_start(request)
        except InvalidRobotStateError:
            return self.group.mid_range()

    def extract_seed(self, request):
        """Parameter matrix of the request seed, before validation.

        Returns
        -------
        parameters : numpy.ndarray (dof, n_waypoints)
        fail_count : int
            tolerated IK failures (always 0 for joint-space seeds).
        """
        if self.is_cartesian_seed(request):
            return self.extract_cartesian_seed(request)
        return self.extract_joint_seed(request), 0

    def resolve_seed(self, request):
        parameters, fail_count = self.extract_seed(request)
        if parameters.shape[1] < MIN_SEED_TIMESTEPS:
            raise SeedTooShortError(
                'Found less than {} points in seed trajectory'.format(
                    MIN_SEED_TIMESTEPS))

        start = self.declared_start(request)
        if not within_tolerance(parameters[:, 0], start,
                                self.distance_threshold):
            raise StartDiscrepancyError(
                'Start state is in discrepancy with the seed trajectory')
        parameters[:, 0] = start

        goal = self.scan_goal(request.goal_constraints, start)
        if goal is None:
            raise GoalUnresolvedError(
                'No goal constraint of the request could be resolved')
        if not within_tolerance(parameters[:, -1], goal,
                                self.distance_threshold):
            raise GoalDiscrepancyError(
                'Goal in seed too far away from goal requested')
        parameters[:, -1] = goal

        parameters = apply_polynomial_smoothing(
            self.group, parameters, self.poly_order,
            self.joint_limit_margin)
        return ResolvedRequest(request, start, goal, parameters,
                               ik_failures=fail_count)

    # ------------------------------------------------------------------
    # direct mode

    def is_cartesian_goal(self, request):
        """A goal region is cartesian when its first entry is cartesian only."""
        if not request.goal_constraints:
            return False
        first = request.goal_constraints[0]
        return first.is_cartesian and not first.is_joint

    def resolve_start_and_goal(self, request):
        if not request.goal_constraints:
            raise GoalOutOfBoundsError('A goal constraint was not provided')
        if self.is_cartesian_goal(request):
            return self._resolve_cartesian(request)

        start = self.declared_start(request)
        if not self.group.satisfies_bounds(start):
            raise StartOutOfBoundsError('Start joint pose is out of bounds')
        goal = self.scan_goal(request.goal_constraints, start)
        if goal is None:
            raise GoalOutOfBoundsError(
                'Unable to retrieve a goal within bounds from the request')
        return ResolvedRequest(request, start, goal)

    def _resolve_cartesian(self, request):
        names = self.group.joint_names
        if request.start_pose is not None:
            try:
                start = self._ik(request.start_pose)
            except IKFailure as e:
                raise IKFailure('Failed to get the start position: {}'
                                .format(e), which='start')
        else:
            start = self.declared_start(request)
            if not self.group.satisfies_bounds(start):
                raise StartOutOfBoundsError(
                    'Start joint pose is out of bounds')

        try:
            goal = self._ik(request.goal_constraints[0].pose())
        except IKFailure as e:
            raise IKFailure('Failed to get the goal position: {}'.format(e),
                            which='goal')

        # downstream consumers observe the resolved joint values
        resolved = request.replace(
            start_state=request.start_state.updated(names, start),
            goal_constraints=[Constraints.from_joint_values(names, goal)])
        return ResolvedRequest(resolved, start, goal)
