class SchedulerError(Exception):
    """Base class for every error raised by the scheduling engine."""


class OracleUnavailable(SchedulerError):
    """The link quality oracle produced no SINR for a candidate set."""


class NoFeasibleMCS(SchedulerError):
    """No MCS meets the target PER at the given SINR."""


class MalformedFlowConfig(SchedulerError, ValueError):
    """Initial flow data is invalid; the simulation cannot start."""


class InvalidCandidateSet(SchedulerError):
    """A candidate set holds duplicate or out-of-range user ids."""


class ConfigError(SchedulerError, ValueError):
    """A configuration value is unknown or out of range."""
