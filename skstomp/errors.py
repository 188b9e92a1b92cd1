"""Typed planning errors.

Every failure the planner can report is raised as a subclass of
:class:`PlanningError`. The planner turns them into a failed
``PlanResult`` using the ``error_code`` attached to each class.
"""

import enum


class ErrorCode(enum.IntEnum):
    """Result codes, numerically identical to ``moveit_msgs/MoveItErrorCodes``."""

    SUCCESS = 1
    FAILURE = 99999
    PLANNING_FAILED = -1
    INVALID_MOTION_PLAN = -2
    TIMED_OUT = -6
    PREEMPTED = -7
    START_STATE_VIOLATES_PATH_CONSTRAINTS = -11
    GOAL_CONSTRAINTS_VIOLATED = -14
    INVALID_GROUP_NAME = -15
    INVALID_GOAL_CONSTRAINTS = -16
    INVALID_ROBOT_STATE = -17
    NO_IK_SOLUTION = -31


class PlanningError(Exception):
    """Base class of all planner errors."""

    error_code = ErrorCode.FAILURE


# configuration

class ConfigError(PlanningError, ValueError):
    """Missing or invalid planner configuration."""


class InvalidGroupError(ConfigError):

    error_code = ErrorCode.INVALID_GROUP_NAME


# kinematics

class ChainTopologyError(PlanningError):
    """The joint group is not a single root-to-tip chain."""

    error_code = ErrorCode.NO_IK_SOLUTION


class IKFailure(PlanningError):
    """Inverse kinematics did not converge.

    Parameters
    ----------
    message : str
        Human readable reason.
    which : str or None
        Which value of the request failed to resolve (``'start'``,
        ``'goal'``) or ``None`` when the caller did not say.
    """

    error_code = ErrorCode.NO_IK_SOLUTION

    def __init__(self, message, which=None):
        if which is not None:
            message = '{} ({})'.format(message, which)
        super(IKFailure, self).__init__(message)
        self.which = which


# seed resolution

class SeedError(PlanningError):
    """Base class of errors aborting seed resolution."""

    error_code = ErrorCode.FAILURE


class SeedFormatError(SeedError):
    pass


class SeedDimensionError(SeedError):

    def __init__(self, message, index):
        super(SeedDimensionError, self).__init__(message)
        self.index = index


class SeedTooShortError(SeedError):
    pass


class StartDiscrepancyError(SeedError):
    pass


class GoalDiscrepancyError(SeedError):
    pass


class GoalUnresolvedError(SeedError):

    error_code = ErrorCode.INVALID_GOAL_CONSTRAINTS


class SmoothingError(SeedError):
    pass


# direct start/goal resolution

class InvalidRobotStateError(PlanningError):
    """The start state does not carry every active joint of the group."""

    error_code = ErrorCode.INVALID_ROBOT_STATE


class StartOutOfBoundsError(PlanningError):

    error_code = ErrorCode.INVALID_MOTION_PLAN


class GoalOutOfBoundsError(PlanningError):

    error_code = ErrorCode.INVALID_MOTION_PLAN


# post-solve

class DimensionMismatch(PlanningError, ValueError):

    error_code = ErrorCode.PLANNING_FAILED


class RetimingError(PlanningError):

    error_code = ErrorCode.PLANNING_FAILED


class CollisionError(PlanningError):

    error_code = ErrorCode.PLANNING_FAILED


class OptimizerError(PlanningError):

    error_code = ErrorCode.PLANNING_FAILED


class PlanningTimeout(OptimizerError):

    error_code = ErrorCode.TIMED_OUT


class PlanningCancelled(OptimizerError):

    error_code = ErrorCode.PREEMPTED
