"""Time-stamped joint trajectories."""

from dataclasses import dataclass
from dataclasses import field
from typing import List

import numpy as np


@dataclass
class JointTrajectoryPoint:
    positions: np.ndarray
    velocities: np.ndarray = None
    accelerations: np.ndarray = None
    time_from_start: float = 0.0

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64)
        if self.velocities is None:
            self.velocities = np.zeros_like(self.positions)
        if self.accelerations is None:
            self.accelerations = np.zeros_like(self.positions)
        self.velocities = np.asarray(self.velocities, dtype=np.float64)
        self.accelerations = np.asarray(self.accelerations, dtype=np.float64)


@dataclass
class JointTrajectory:
    """Ordered waypoints of a joint group.

    Attributes
    ----------
    joint_names : list[str]
        joint order of every waypoint vector.
    points : list[JointTrajectoryPoint]
    """

    joint_names: List[str] = field(default_factory=list)
    points: List[JointTrajectoryPoint] = field(default_factory=list)

    def __len__(self):
        return len(self.points)

    @property
    def empty(self):
        return len(self.points) == 0

    @property
    def positions(self):
        """Waypoint positions as an array (n_points, n_joints)."""
        if self.empty:
            return np.zeros((0, len(self.joint_names)))
        return np.vstack([p.positions for p in self.points])

    @property
    def time_from_start(self):
        return np.array([p.time_from_start for p in self.points])

    @property
    def duration(self):
        if self.empty:
            return 0.0
        return self.points[-1].time_from_start
