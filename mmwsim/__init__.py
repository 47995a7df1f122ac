"""Slot-level scheduling engine for a millimeter-wave base station."""

from mmwsim.errors import (
    ConfigError,
    InvalidCandidateSet,
    MalformedFlowConfig,
    NoFeasibleMCS,
    OracleUnavailable,
    SchedulerError,
)
from mmwsim.simulator import Scheduler, SimulationResult, SlotState, run_scenario
from mmwsim.traffic import Flow, FlowStore

__all__ = [
    "ConfigError",
    "Flow",
    "FlowStore",
    "InvalidCandidateSet",
    "MalformedFlowConfig",
    "NoFeasibleMCS",
    "OracleUnavailable",
    "Scheduler",
    "SchedulerError",
    "SimulationResult",
    "SlotState",
    "run_scenario",
]
