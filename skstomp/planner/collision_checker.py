import numpy as np


class ValidityChecker(object):
    """Interface of the path validity oracle used after optimization."""

    def is_path_valid(self, trajectory, group_name):
        """Return True when every waypoint of ``trajectory`` is valid.

        Parameters
        ----------
        trajectory : skstomp.trajectory.JointTrajectory
            trajectory to check.
        group_name : str
            planning group the trajectory belongs to.
        """
        raise NotImplementedError


class JointLimitValidityChecker(ValidityChecker):
    """Validity checker rejecting waypoints outside the joint bounds.

    Parameters
    ----------
    robot_model : skstomp.model.RobotModel
        model providing the group bounds.
    margin : float
        tolerance added to every bound.
    """

    def __init__(self, robot_model, margin=1e-6):
        self.robot_model = robot_model
        self.margin = margin

    def is_path_valid(self, trajectory, group_name):
        group = self.robot_model.get_group(group_name)
        if list(trajectory.joint_names) != list(group.joint_names):
            return False
        return all(group.satisfies_bounds(p.positions, self.margin)
                   for p in trajectory.points)


class FunctionValidityChecker(ValidityChecker):
    """Adapt a per-configuration predicate ``fn(q) -> bool``.

    Consecutive waypoints are linearly interpolated so that no gap
    longer than ``resolution`` in joint space goes unchecked.
    """

    def __init__(self, fn, resolution=0.05):
        self.fn = fn
        self.resolution = resolution

    def is_path_valid(self, trajectory, group_name):
        positions = trajectory.positions
        for i in range(len(positions)):
            if not self.fn(positions[i]):
                return False
            if i + 1 == len(positions):
                break
            gap = np.linalg.norm(positions[i + 1] - positions[i])
            n_sub = int(np.ceil(gap / self.resolution))
            for s in range(1, n_sub):
                q = positions[i] + (positions[i + 1] - positions[i]) \
                    * float(s) / n_sub
                if not self.fn(q):
                    return False
        return True
