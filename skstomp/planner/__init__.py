# flake8: noqa

from skstomp.planner.config import get_config_data
from skstomp.planner.config import InitializationMethod
from skstomp.planner.config import OptimizationConfig
from skstomp.planner.config import parse_config
from skstomp.planner.driver import load_planners
from skstomp.planner.driver import PlannerState
from skstomp.planner.driver import PlanResult
from skstomp.planner.driver import StompPlanner
from skstomp.planner.kinematics import IKSolver
from skstomp.planner.kinematics import solve_ik
from skstomp.planner.resolver import RequestResolver
