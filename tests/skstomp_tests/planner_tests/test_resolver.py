import unittest

import numpy as np
from numpy import testing

from skstomp.errors import ChainTopologyError
from skstomp.errors import GoalDiscrepancyError
from skstomp.errors import GoalOutOfBoundsError
from skstomp.errors import GoalUnresolvedError
from skstomp.errors import IKFailure
from skstomp.errors import InvalidRobotStateError
from skstomp.errors import SeedDimensionError
from skstomp.errors import SeedError
from skstomp.errors import SeedFormatError
from skstomp.errors import SeedTooShortError
from skstomp.errors import StartDiscrepancyError
from skstomp.errors import StartOutOfBoundsError
from skstomp.model import JointGroup
from skstomp.planner.resolver import RequestResolver
from skstomp.planner.resolver import within_tolerance
from skstomp.request import Constraints
from skstomp.request import JointConstraint
from skstomp.request import MotionRequest
from skstomp.request import Pose
from skstomp.request import RobotState


JOINT_NAMES = ['joint1', 'joint2']


class StubIK(object):
    """IK returning ``[x] * dof`` for a pose at ``x`` on the x axis."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.hints = []

    def __call__(self, pose, group, hint=None):
        self.hints.append(None if hint is None else np.array(hint))
        key = int(round(pose.position[0]))
        if key in self.fail:
            raise IKFailure('no solution for {}'.format(key))
        return np.full(group.dof, pose.position[0])


def joint_waypoints(columns):
    return [Constraints.from_joint_values(JOINT_NAMES, c) for c in columns]


def pose_waypoint(x):
    return Constraints.from_pose('tool', Pose([x, 0.0, 0.0]))


def make_request(start=(0.0, 0.0), goals=(), seed=(), **kwargs):
    return MotionRequest(
        group_name='arm',
        start_state=RobotState(JOINT_NAMES, start),
        goal_constraints=list(goals),
        trajectory_constraints=list(seed),
        **kwargs)


class TestWithinTolerance(unittest.TestCase):

    def test_inclusive(self):
        self.assertTrue(within_tolerance([0.25, 0.25], [0.0, 0.0], 0.5))
        self.assertFalse(within_tolerance([0.25, 0.25 + 1e-9], [0, 0], 0.5))


class ResolverTestCase(unittest.TestCase):

    def setUp(self):
        self.group = JointGroup('arm', JOINT_NAMES,
                                [[-5.0, 5.0], [-5.0, 5.0]])
        self.ik = StubIK()
        self.resolver = RequestResolver(self.group, ik_solver=self.ik)


class TestJointSeed(ResolverTestCase):

    def test_end_to_end_seed_is_unchanged(self):
        request = make_request(
            start=[0.0, 0.0],
            goals=joint_waypoints([[2.0, 2.0]]),
            seed=joint_waypoints([[0, 0], [1, 1], [2, 2]]))
        resolved = self.resolver.resolve(request)
        self.assertTrue(resolved.use_seed)
        testing.assert_almost_equal(resolved.parameters,
                                    [[0, 1, 2], [0, 1, 2]])
        testing.assert_equal(resolved.start, [0, 0])
        testing.assert_equal(resolved.goal, [2, 2])
        self.assertIs(resolved.request, request)
        self.assertEqual(resolved.ik_failures, 0)

    def test_missing_joint_constraint(self):
        request = make_request(
            goals=joint_waypoints([[2.0, 2.0]]),
            seed=joint_waypoints([[0, 0], [1, 1], [2, 2], [3, 3]]))
        request.trajectory_constraints[2].joint_constraints.pop()
        with self.assertRaises(SeedDimensionError) as cm:
            self.resolver.resolve(request)
        self.assertEqual(cm.exception.index, 2)

    def test_joint_name_mismatch(self):
        request = make_request(
            goals=joint_waypoints([[2.0, 2.0]]),
            seed=joint_waypoints([[0, 0], [1, 1], [2, 2]]))
        request.trajectory_constraints[1].joint_constraints.reverse()
        with self.assertRaises(SeedDimensionError) as cm:
            self.resolver.resolve(request)
        self.assertEqual(cm.exception.index, 1)

    def test_seed_format(self):
        waypoint = pose_waypoint(0.0)
        waypoint.orientation_constraints = []
        request = make_request(goals=joint_waypoints([[2.0, 2.0]]),
                               seed=[waypoint])
        with self.assertRaises(SeedFormatError):
            self.resolver.resolve(request)

    def test_seed_too_short(self):
        request = make_request(
            goals=joint_waypoints([[1.0, 1.0]]),
            seed=joint_waypoints([[0, 0], [1, 1]]))
        with self.assertRaises(SeedTooShortError):
            self.resolver.resolve(request)

    def test_start_at_tolerance_is_snapped(self):
        request = make_request(
            start=[0.0, 0.0],
            goals=joint_waypoints([[2.0, 2.0]]),
            seed=joint_waypoints([[0.25, 0.25], [1, 1], [2, 2]]))
        resolved = self.resolver.resolve(request)
        testing.assert_equal(resolved.parameters[:, 0], [0.0, 0.0])

    def test_start_beyond_tolerance(self):
        request = make_request(
            start=[0.0, 0.0],
            goals=joint_waypoints([[2.0, 2.0]]),
            seed=joint_waypoints([[0.25, 0.25 + 1e-9], [1, 1], [2, 2]]))
        with self.assertRaises(StartDiscrepancyError):
            self.resolver.resolve(request)

    def test_goal_at_tolerance_is_snapped(self):
        request = make_request(
            start=[0.0, 0.0],
            goals=joint_waypoints([[2.0, 2.0]]),
            seed=joint_waypoints([[0, 0], [1, 1], [2.25, 1.75]]))
        resolved = self.resolver.resolve(request)
        testing.assert_equal(resolved.parameters[:, -1], [2.0, 2.0])

    def test_goal_beyond_tolerance(self):
        request = make_request(
            start=[0.0, 0.0],
            goals=joint_waypoints([[2.0, 2.0]]),
            seed=joint_waypoints([[0, 0], [1, 1], [2.5, 2.5]]))
        with self.assertRaises(GoalDiscrepancyError):
            self.resolver.resolve(request)

    def test_goal_unresolved(self):
        request = make_request(
            goals=joint_waypoints([[9.0, 0.0]]),
            seed=joint_waypoints([[0, 0], [1, 1], [2, 2]]))
        with self.assertRaises(GoalUnresolvedError):
            self.resolver.resolve(request)

    def test_start_state_missing_joint(self):
        request = make_request(
            goals=joint_waypoints([[2.0, 2.0]]),
            seed=joint_waypoints([[0, 0], [1, 1], [2, 2]]))
        request.start_state = RobotState(['joint1'], [0.0])
        with self.assertRaises(InvalidRobotStateError):
            self.resolver.resolve(request)

    def test_seed_error_does_not_fall_back_to_direct_mode(self):
        # start and goal alone would resolve in direct mode
        request = make_request(
            goals=joint_waypoints([[2.0, 2.0]]),
            seed=joint_waypoints([[3, 3], [1, 1], [2, 2]]))
        with self.assertRaises(SeedError):
            self.resolver.resolve(request)

    def test_interior_is_smoothed(self):
        request = make_request(
            start=[0.0, 0.0],
            goals=joint_waypoints([[2.0, 2.0]]),
            seed=joint_waypoints([[0, 0], [0.1, 0.1], [0.9, 0.9],
                                  [0.2, 0.2], [1.9, 1.9], [1.1, 1.1],
                                  [2, 2]]))
        resolved = self.resolver.resolve(request)
        testing.assert_equal(resolved.parameters[:, 0], [0, 0])
        testing.assert_equal(resolved.parameters[:, -1], [2, 2])
        seed = np.array([[0, 0.1, 0.9, 0.2, 1.9, 1.1, 2]] * 2)
        self.assertFalse(np.allclose(resolved.parameters, seed))


class TestCartesianSeed(ResolverTestCase):

    def test_partial_ik_failure_repeats_previous_column(self):
        ik = StubIK(fail=[2])
        resolver = RequestResolver(self.group, ik_solver=ik)
        request = make_request(
            seed=[pose_waypoint(x) for x in range(5)])
        parameters, fail_count = resolver.extract_cartesian_seed(request)
        self.assertEqual(parameters.shape, (2, 5))
        self.assertEqual(fail_count, 1)
        testing.assert_equal(parameters[:, 2], parameters[:, 1])
        testing.assert_equal(parameters,
                             [[0, 1, 1, 3, 4], [0, 1, 1, 3, 4]])

    def test_ik_hint_is_chained(self):
        ik = StubIK(fail=[2])
        resolver = RequestResolver(self.group, ik_solver=ik)
        resolver.extract_cartesian_seed(
            make_request(seed=[pose_waypoint(x) for x in range(5)]))
        self.assertIsNone(ik.hints[0])
        testing.assert_equal(ik.hints[1], [0, 0])
        testing.assert_equal(ik.hints[2], [1, 1])
        testing.assert_equal(ik.hints[3], [1, 1])
        testing.assert_equal(ik.hints[4], [3, 3])

    def test_first_waypoint_failure_uses_start(self):
        resolver = RequestResolver(self.group, ik_solver=StubIK(fail=[0]))
        parameters, fail_count = resolver.extract_cartesian_seed(
            make_request(start=[0.5, -0.5],
                         seed=[pose_waypoint(x) for x in range(3)]))
        self.assertEqual(fail_count, 1)
        testing.assert_equal(parameters[:, 0], [0.5, -0.5])

        request = make_request(seed=[pose_waypoint(x) for x in range(3)])
        request.start_state = RobotState()
        parameters, _ = resolver.extract_cartesian_seed(request)
        testing.assert_equal(parameters[:, 0], self.group.mid_range())

    def test_cartesian_seed_tolerates_ik_failure(self):
        resolver = RequestResolver(self.group, ik_solver=StubIK(fail=[2]))
        request = make_request(
            start=[0.0, 0.0],
            goals=[pose_waypoint(4.0)],
            seed=[pose_waypoint(x) for x in range(5)])
        resolved = resolver.resolve(request)
        self.assertEqual(resolved.ik_failures, 1)
        self.assertEqual(resolved.parameters.shape, (2, 5))
        testing.assert_equal(resolved.goal, [4.0, 4.0])

    def test_mixed_waypoint(self):
        seed = [pose_waypoint(0.0), pose_waypoint(1.0),
                Constraints(joint_constraints=[JointConstraint('joint1', 0)])]
        with self.assertRaises(SeedFormatError):
            self.resolver.extract_seed(make_request(seed=seed))


class TestGoalScan(ResolverTestCase):

    def test_second_entry_wins(self):
        goals = [pose_waypoint(1.0), pose_waypoint(2.0), pose_waypoint(3.0)]
        goals[1] = Constraints.from_joint_values(JOINT_NAMES, [1.5, -1.5])
        goals[2] = Constraints.from_joint_values(JOINT_NAMES, [7.0, 0.0])
        resolver = RequestResolver(self.group, ik_solver=StubIK(fail=[1]))
        goal = resolver.scan_goal(goals, np.zeros(2))
        testing.assert_equal(goal, [1.5, -1.5])

    def test_scan_order_in_direct_mode(self):
        goals = [
            Constraints.from_joint_values(JOINT_NAMES, [6.0, 0.0]),
            Constraints.from_joint_values(JOINT_NAMES, [1.0, 2.0]),
            pose_waypoint(3.0),
        ]
        resolved = self.resolver.resolve(make_request(goals=goals))
        testing.assert_equal(resolved.goal, [1.0, 2.0])

    def test_partial_joint_goal_keeps_base(self):
        goal = Constraints(joint_constraints=[JointConstraint('joint2', 1.0)])
        result = self.resolver.scan_goal([goal], np.array([0.5, 0.0]))
        testing.assert_equal(result, [0.5, 1.0])

    def test_cartesian_out_of_bounds_is_skipped(self):
        goals = [pose_waypoint(8.0), pose_waypoint(2.0)]
        goal = self.resolver.scan_goal(goals, np.zeros(2))
        testing.assert_equal(goal, [2.0, 2.0])
        self.assertIsNone(self.ik.hints[0])

    def test_chain_topology_is_skipped(self):
        def ik(pose, group, hint=None):
            raise ChainTopologyError('two roots')

        resolver = RequestResolver(self.group, ik_solver=ik)
        self.assertIsNone(resolver.scan_goal([pose_waypoint(1.0)],
                                             np.zeros(2)))


class TestDirectMode(ResolverTestCase):

    def test_joint_goal(self):
        request = make_request(
            start=[0.5, 0.5],
            goals=joint_waypoints([[1.0, -1.0]]))
        resolved = self.resolver.resolve(request)
        self.assertFalse(resolved.use_seed)
        testing.assert_equal(resolved.start, [0.5, 0.5])
        testing.assert_equal(resolved.goal, [1.0, -1.0])
        self.assertIs(resolved.request, request)

    def test_start_out_of_bounds(self):
        request = make_request(start=[6.0, 0.0],
                               goals=joint_waypoints([[1.0, 1.0]]))
        with self.assertRaises(StartOutOfBoundsError):
            self.resolver.resolve(request)

    def test_goal_out_of_bounds(self):
        request = make_request(goals=joint_waypoints([[6.0, 0.0],
                                                      [0.0, -6.0]]))
        with self.assertRaises(GoalOutOfBoundsError):
            self.resolver.resolve(request)

    def test_no_goal(self):
        with self.assertRaises(GoalOutOfBoundsError):
            self.resolver.resolve(make_request())

    def test_cartesian_goal_writes_back_into_a_copy(self):
        request = make_request(
            start=[0.0, 0.0],
            goals=[pose_waypoint(2.0)],
            start_pose=Pose([1.0, 0.0, 0.0]))
        request.start_state = RobotState(JOINT_NAMES + ['gripper'],
                                         [0.0, 0.0, 0.3])
        resolved = self.resolver.resolve(request)
        testing.assert_equal(resolved.start, [1.0, 1.0])
        testing.assert_equal(resolved.goal, [2.0, 2.0])
        self.assertIsNot(resolved.request, request)
        self.assertEqual(resolved.request.start_state.to_dict(),
                         {'joint1': 1.0, 'joint2': 1.0, 'gripper': 0.3})
        goal = resolved.request.goal_constraints
        self.assertEqual(len(goal), 1)
        self.assertTrue(goal[0].is_joint)
        self.assertEqual([jc.position for jc in goal[0].joint_constraints],
                         [2.0, 2.0])
        # caller's request is untouched
        self.assertEqual(request.start_state.positions, [0.0, 0.0, 0.3])
        self.assertTrue(request.goal_constraints[0].is_cartesian)
        # start and goal are solved without chaining
        self.assertEqual(self.ik.hints, [None, None])

    def test_cartesian_goal_without_start_pose(self):
        request = make_request(start=[0.5, 0.5], goals=[pose_waypoint(2.0)])
        resolved = self.resolver.resolve(request)
        testing.assert_equal(resolved.start, [0.5, 0.5])
        testing.assert_equal(resolved.goal, [2.0, 2.0])

    def test_direct_cartesian_start_ik_failure_aborts(self):
        resolver = RequestResolver(self.group, ik_solver=StubIK(fail=[1]))
        request = make_request(goals=[pose_waypoint(2.0)],
                               start_pose=Pose([1.0, 0.0, 0.0]))
        with self.assertRaises(IKFailure) as cm:
            resolver.resolve(request)
        self.assertEqual(cm.exception.which, 'start')

    def test_direct_cartesian_goal_ik_failure_aborts(self):
        # unlike cartesian seeds, a direct-mode IK failure is fatal
        resolver = RequestResolver(self.group, ik_solver=StubIK(fail=[2]))
        request = make_request(goals=[pose_waypoint(2.0)])
        with self.assertRaises(IKFailure) as cm:
            resolver.resolve(request)
        self.assertEqual(cm.exception.which, 'goal')
