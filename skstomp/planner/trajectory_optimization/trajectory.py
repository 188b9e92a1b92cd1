"""Trajectory initialization for trajectory optimization."""

from functools import lru_cache

import numpy as np
import scipy.linalg

from skstomp.planner.config import InitializationMethod


def interpolate_trajectory(start_angles, end_angles, n_waypoints):
    """Create linear interpolation between start and end configurations.

    Parameters
    ----------
    start_angles : array-like
        Starting joint angles (n_joints,).
    end_angles : array-like
        Ending joint angles (n_joints,).
    n_waypoints : int
        Number of waypoints including start and end.

    Returns
    -------
    numpy.ndarray
        Interpolated trajectory (n_waypoints, n_joints).
    """
    start = np.array(start_angles, dtype=np.float64)
    end = np.array(end_angles, dtype=np.float64)
    t = np.linspace(0, 1, n_waypoints)[:, np.newaxis]
    return start + t * (end - start)


def cubic_trajectory(start_angles, end_angles, n_waypoints):
    """Cubic interpolation with zero velocity at both ends.

    Returns
    -------
    numpy.ndarray
        Interpolated trajectory (n_waypoints, n_joints).
    """
    start = np.array(start_angles, dtype=np.float64)
    end = np.array(end_angles, dtype=np.float64)
    t = np.linspace(0, 1, n_waypoints)[:, np.newaxis]
    s = 3 * t ** 2 - 2 * t ** 3
    return start + s * (end - start)


@lru_cache(maxsize=100)
def control_cost_matrix(n_wp):
    """Quadratic form of the squared finite-difference acceleration.

    ``theta.dot(R).dot(theta)`` equals the sum of squared second
    differences of the sequence ``theta`` of length ``n_wp``.
    """
    acc_block = np.array([[1, -2, 1], [-2, 4, -2], [1, -2, 1]],
                         dtype=np.float64)
    R = np.zeros((n_wp, n_wp))
    for i in range(1, n_wp - 1):
        R[i - 1:i + 2, i - 1:i + 2] += acc_block
    R.flags.writeable = False
    return R


def minimum_control_cost_trajectory(start_angles, end_angles, n_waypoints):
    """Trajectory minimizing squared acceleration, at rest at both ends.

    The start and goal are each repeated once outside the trajectory so
    that the boundary velocity is zero; the interior then solves the
    resulting equality constrained quadratic program in closed form.

    Returns
    -------
    numpy.ndarray
        Trajectory (n_waypoints, n_joints).
    """
    start = np.array(start_angles, dtype=np.float64)
    end = np.array(end_angles, dtype=np.float64)
    if n_waypoints <= 2:
        return interpolate_trajectory(start, end, n_waypoints)
    n_padded = n_waypoints + 2
    R = control_cost_matrix(n_padded)
    fixed = [0, 1, n_padded - 2, n_padded - 1]
    free = list(range(2, n_padded - 2))
    fixed_values = np.vstack((start, start, end, end))
    # minimize x_f^T R_ff x_f + 2 x_f^T R_fc x_c
    R_ff = R[np.ix_(free, free)]
    R_fc = R[np.ix_(free, fixed)]
    interior = scipy.linalg.solve(R_ff, -R_fc.dot(fixed_values),
                                  assume_a='pos')
    return np.vstack((start, interior, end))


def initialize_parameters(method, start, goal, n_timesteps):
    """Initial parameter matrix (n_joints, n_timesteps) from start to goal.

    Parameters
    ----------
    method : skstomp.planner.config.InitializationMethod or int
        1: linear, 2: cubic polynomial, 3: minimum control cost.
    """
    method = InitializationMethod.parse(method)
    if method == InitializationMethod.LINEAR_INTERPOLATION:
        trajectory = interpolate_trajectory(start, goal, n_timesteps)
    elif method == InitializationMethod.CUBIC_POLYNOMIAL_INTERPOLATION:
        trajectory = cubic_trajectory(start, goal, n_timesteps)
    elif method == InitializationMethod.MINIMUM_CONTROL_COST:
        trajectory = minimum_control_cost_trajectory(start, goal,
                                                     n_timesteps)
    else:
        raise ValueError(f"Unknown initialization method: {method}")
    return trajectory.T.copy()
