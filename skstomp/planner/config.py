"""Optimization configuration.

The configuration arrives as a loosely typed nested mapping (typically
the STOMP parameter set of one planning group)::

    {
        'group_name': 'manipulator',
        'task': {...},
        'optimization': {
            'num_timesteps': 60,
            'num_iterations': 40,
            ...
        },
    }

It is parsed once, field by field, into an :class:`OptimizationConfig`.
"""

from dataclasses import dataclass
import enum
from logging import getLogger

from skstomp.errors import ConfigError


logger = getLogger(__name__)


class InitializationMethod(enum.IntEnum):
    LINEAR_INTERPOLATION = 1
    CUBIC_POLYNOMIAL_INTERPOLATION = 2
    MINIMUM_CONTROL_COST = 3

    @classmethod
    def parse(cls, value):
        """Accept a member, its integer code or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key in cls.__members__:
                return cls[key]
            try:
                value = int(key)
            except ValueError:
                raise ConfigError(
                    'Unknown initialization_method {!r}'.format(value))
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise ConfigError(
                'Unknown initialization_method {!r}'.format(value))


@dataclass
class OptimizationConfig:
    control_cost_weight: float = 0.0
    initialization_method: InitializationMethod = \
        InitializationMethod.LINEAR_INTERPOLATION
    num_timesteps: int = 40
    delta_t: float = 1.0
    num_iterations: int = 50
    num_iterations_after_valid: int = 0
    max_rollouts: int = 100
    num_rollouts: int = 10
    exponentiated_cost_sensitivity: float = 10.0
    num_dimensions: int = 0

    @classmethod
    def from_dict(cls, mapping, num_dimensions):
        return parse_config(mapping, num_dimensions)

    def copy(self, **changes):
        values = dict(self.__dict__)
        values.update(changes)
        return OptimizationConfig(**values)


def _to_int(value):
    """Convert to int without silently truncating."""
    if isinstance(value, bool):
        raise TypeError('expected an integer, got a bool')
    result = int(value)
    if not isinstance(value, str) and result != value:
        raise ValueError('expected an integer, got {}'.format(value))
    return result


# key -> converter, in the order the fields are applied
_FIELDS = (
    ('control_cost_weight', float),
    ('initialization_method', InitializationMethod.parse),
    ('num_timesteps', _to_int),
    ('delta_t', float),
    ('num_iterations', _to_int),
    ('num_iterations_after_valid', _to_int),
    ('max_rollouts', _to_int),
    ('num_rollouts', _to_int),
    ('exponentiated_cost_sensitivity', float),
)

_POSITIVE = ('num_timesteps', 'num_iterations', 'max_rollouts',
             'num_rollouts')


def parse_config(mapping, num_dimensions):
    """Build an :class:`OptimizationConfig` from a parameter mapping.

    Parameters
    ----------
    mapping : dict
        'optimization' section of the planner configuration. Missing keys
        keep their defaults and unknown keys are ignored.
    num_dimensions : int
        number of active joints of the planning group.

    Returns
    -------
    config : OptimizationConfig

    Raises
    ------
    ConfigError
        when a value cannot be converted, is out of range or the group
        has no active joints.
    """
    if mapping is None:
        mapping = {}
    if not hasattr(mapping, 'get'):
        raise ConfigError('optimization parameters must be a mapping, '
                          'got {}'.format(type(mapping).__name__))
    config = OptimizationConfig()
    for key, convert in _FIELDS:
        if key not in mapping:
            continue
        try:
            value = convert(mapping[key])
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError('Invalid value {!r} for {}: {}'.format(
                mapping[key], key, e))
        setattr(config, key, value)

    for key in _POSITIVE:
        if getattr(config, key) <= 0:
            raise ConfigError('{} must be positive, got {}'.format(
                key, getattr(config, key)))
    if config.num_iterations_after_valid < 0:
        raise ConfigError('num_iterations_after_valid must not be negative')
    if config.delta_t <= 0.0:
        raise ConfigError('delta_t must be positive')

    config.num_dimensions = int(num_dimensions)
    if config.num_dimensions <= 0:
        raise ConfigError('Planning group has no active joints')
    return config


def get_config_data(params):
    """Index planner configurations by their planning group.

    Parameters
    ----------
    params : dict
        mapping of arbitrary entry names to planner configurations, each
        one carrying a 'group_name'.

    Returns
    -------
    config : dict[str, dict]
        planner configuration for each group name.
    """
    if not hasattr(params, 'items'):
        raise ConfigError("The 'stomp' configuration parameter was not found")
    config = {}
    for entry_name, entry in params.items():
        try:
            group_name = str(entry['group_name'])
        except (KeyError, TypeError):
            raise ConfigError(
                "Entry '{}' of the 'stomp' configuration has no "
                "group_name".format(entry_name))
        if group_name in config:
            logger.warning('Duplicated configuration for group %s, '
                           'ignoring entry %s', group_name, entry_name)
            continue
        config[group_name] = entry
    return config
