import os
import sys
from pathlib import Path

# Ensure package import for tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.environ.setdefault("MPLBACKEND", "Agg")

import numpy as np
import pytest

from mmwsim.channel import LinkQualityOracle
from mmwsim.config import build_params
from mmwsim.errors import OracleUnavailable
from mmwsim.link_adaptation import MCSPERTable
from mmwsim.traffic import Flow, FlowStore


def make_table(rate: float, snr_ref: float = 0.0) -> MCSPERTable:
    """Single-MCS table: PER is exp(-10) at 20 dB and 1 below `snr_ref`."""
    return MCSPERTable({1: (rate, snr_ref)})


def make_flow(first: int, last: int, payload: int, slot_ms: float = 1.0) -> Flow:
    slots = tuple(range(first, last + 1))
    return Flow(slots=slots, th=payload / (len(slots) * slot_ms * 1e-3), payload=payload, deadline=last)


class SizeOracle(LinkQualityOracle):
    """Good link for single-user sets, unusable link when users share the array."""
    name = 'size'

    def __init__(self, single_db=20.0, shared_db=-50.0):
        self.single_db = single_db
        self.shared_db = shared_db
        self.calls = []

    def evaluate(self, candidate, problem):
        self.calls.append(candidate.users)
        value = self.single_db if len(candidate.users) == 1 else self.shared_db
        return np.full(len(candidate.users), value)


class BrokenOracle(LinkQualityOracle):
    name = 'broken'

    def evaluate(self, candidate, problem):
        raise OracleUnavailable("no channel estimate")


@pytest.fixture
def params():
    return build_params({'n_users': 2, 'n_slots': 12, 'slot_ms': 1.0, 'seed': 0})


@pytest.fixture
def two_user_store():
    return FlowStore(2, {1: [make_flow(1, 10, 1000)], 2: [make_flow(1, 10, 1000)]})
