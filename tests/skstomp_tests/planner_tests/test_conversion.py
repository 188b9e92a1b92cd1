import unittest

import numpy as np
from numpy import testing

from skstomp.errors import DimensionMismatch
from skstomp.errors import RetimingError
from skstomp.planner.conversion import encode_seed
from skstomp.planner.conversion import parameters_to_trajectory
from skstomp.planner.conversion import retime_trajectory
from skstomp.planner.conversion import trajectory_to_parameters
from skstomp.trajectory import JointTrajectory
from skstomp.trajectory import JointTrajectoryPoint


JOINT_NAMES = ['joint1', 'joint2', 'joint3']


class TestParameterConversion(unittest.TestCase):

    def test_round_trip(self):
        rng = np.random.RandomState(0)
        for timesteps in (1, 2, 7):
            parameters = rng.uniform(-1, 1, (3, timesteps))
            trajectory = parameters_to_trajectory(parameters, JOINT_NAMES)
            testing.assert_equal(trajectory_to_parameters(trajectory),
                                 parameters)

    def test_column_becomes_waypoint(self):
        parameters = np.array([[0.0, 1.0, 2.0],
                               [0.0, 1.0, 2.0],
                               [5.0, 4.0, 3.0]])
        trajectory = parameters_to_trajectory(parameters, JOINT_NAMES)
        self.assertEqual(len(trajectory), 3)
        self.assertEqual(trajectory.joint_names, JOINT_NAMES)
        testing.assert_equal(trajectory.points[1].positions, [1, 1, 4])
        testing.assert_equal(trajectory.points[1].velocities, np.zeros(3))
        testing.assert_equal(trajectory.points[1].accelerations, np.zeros(3))
        self.assertEqual(trajectory.points[2].time_from_start, 0.0)

    def test_rows_mismatch(self):
        with self.assertRaises(DimensionMismatch):
            parameters_to_trajectory(np.zeros((2, 4)), JOINT_NAMES)
        with self.assertRaises(DimensionMismatch):
            parameters_to_trajectory(np.zeros(3), JOINT_NAMES)

    def test_waypoint_mismatch(self):
        trajectory = JointTrajectory(JOINT_NAMES, [
            JointTrajectoryPoint([0.0, 0.0, 0.0]),
            JointTrajectoryPoint([0.0, 0.0])])
        with self.assertRaises(DimensionMismatch):
            trajectory_to_parameters(trajectory)


class TestRetimeTrajectory(unittest.TestCase):

    def setUp(self):
        self.trajectory = parameters_to_trajectory(
            np.array([[0.0, 1.0, 2.0]]), ['joint1'])

    def test_delegates_to_oracle(self):
        calls = []

        def retime(trajectory, velocity_scale):
            calls.append(velocity_scale)
            for i, point in enumerate(trajectory.points):
                point.time_from_start = float(i)
            return trajectory

        retimed = retime_trajectory(self.trajectory, 0.5, retime)
        self.assertEqual(calls, [0.5])
        testing.assert_equal(retimed.time_from_start, [0, 1, 2])

    def test_oracle_failure(self):
        with self.assertRaises(RetimingError):
            retime_trajectory(self.trajectory, 1.0, lambda t, s: None)

        def failing(trajectory, velocity_scale):
            raise RetimingError('limits cannot be satisfied')

        with self.assertRaises(RetimingError):
            retime_trajectory(self.trajectory, 1.0, failing)

    def test_non_monotonic_time(self):
        def retime(trajectory, velocity_scale):
            for point, t in zip(trajectory.points, [0.0, 2.0, 1.0]):
                point.time_from_start = t
            return trajectory

        with self.assertRaises(RetimingError):
            retime_trajectory(self.trajectory, 1.0, retime)


class TestEncodeSeed(unittest.TestCase):

    def test_encode(self):
        parameters = np.array([[0.0, 0.5, 1.0],
                               [1.0, 0.5, 0.0],
                               [2.0, 2.0, 2.0]])
        seed = encode_seed(parameters_to_trajectory(parameters, JOINT_NAMES))
        self.assertEqual(len(seed), 3)
        for t, waypoint in enumerate(seed):
            self.assertTrue(waypoint.is_joint)
            self.assertEqual(
                [jc.joint_name for jc in waypoint.joint_constraints],
                JOINT_NAMES)
            testing.assert_equal(
                [jc.position for jc in waypoint.joint_constraints],
                parameters[:, t])

    def test_reject_wrong_dimension(self):
        trajectory = JointTrajectory(JOINT_NAMES, [
            JointTrajectoryPoint([0.0, 0.0, 0.0, 0.0])])
        with self.assertRaises(DimensionMismatch):
            encode_seed(trajectory)
