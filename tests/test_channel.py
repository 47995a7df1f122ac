import math

import numpy as np
import pytest

from mmwsim.candidates import CandidateSet
from mmwsim.channel import (DummyOracle, FreeSpaceOracle, TableOracle, free_space_gain,
                            get_oracle)
from mmwsim.config import build_params
from mmwsim.errors import ConfigError, OracleUnavailable
from mmwsim.link_adaptation import MCSPERTable


def cand(*users):
    return CandidateSet(users=users, demands=(1e8,) * len(users), priority=1.0)


def test_table_oracle_is_constant():
    sinr = TableOracle(14.0).evaluate(cand(1, 2, 3), {})
    assert sinr.tolist() == [14.0, 14.0, 14.0]


def test_empty_set_is_unavailable():
    with pytest.raises(OracleUnavailable):
        TableOracle(14.0).evaluate(cand(), {})


def test_dummy_meets_objective():
    oracle = DummyOracle((-5.0, 30.0))
    snr = oracle.evaluate(cand(1, 2), {'min_obj': np.array([10.0, 100.0]), 'min_obj_is_snr': True})
    assert snr == pytest.approx([10.0, 20.0])
    # spectral efficiency 1 bit/s/Hz needs SNR 1 (0 dB)
    snr = oracle.evaluate(cand(1), {'min_obj': np.array([1.0]), 'min_obj_is_snr': False})
    assert snr == pytest.approx([0.0])


def test_dummy_clips_to_table_range():
    oracle = DummyOracle((-5.0, 30.0))
    snr = oracle.evaluate(cand(1, 2), {'min_obj': np.array([0.0, 1e9]), 'min_obj_is_snr': True})
    assert snr.tolist() == [-5.0, 30.0]


def test_dummy_rejects_mismatched_objectives():
    with pytest.raises(OracleUnavailable):
        DummyOracle().evaluate(cand(1, 2), {'min_obj': np.array([1.0]), 'min_obj_is_snr': True})


def test_friis_gain():
    assert free_space_gain(1.0, 4 * math.pi) == pytest.approx(1.0)
    assert free_space_gain(20.0, 0.005) == pytest.approx(free_space_gain(10.0, 0.005) / 4)


@pytest.fixture
def free_space():
    cfg = build_params({'n_users': 3, 'bf_algorithm': 'free-space',
                        'user_distances_m': [5.0, 10.0, 20.0]})
    return FreeSpaceOracle(cfg)


def test_free_space_nearer_user_is_better(free_space):
    sinr = free_space.evaluate(cand(1, 2, 3), {})
    assert sinr[0] > sinr[1] > sinr[2]


def test_free_space_sharing_costs_sinr(free_space):
    alone = free_space.evaluate(cand(1), {})[0]
    shared = free_space.evaluate(cand(1, 2), {})[0]
    assert alone > shared


def test_free_space_unknown_user(free_space):
    with pytest.raises(OracleUnavailable):
        free_space.evaluate(cand(1, 7), {})


def test_free_space_random_positions_are_seeded():
    cfg = build_params({'n_users': 4, 'bf_algorithm': 'free-space', 'seed': 11})
    assert FreeSpaceOracle(cfg).distances == FreeSpaceOracle(cfg).distances


def test_get_oracle_by_name():
    cfg = build_params()
    oracle = get_oracle('table-HEU', cfg)
    assert isinstance(oracle, TableOracle)
    assert oracle.sinr_db == 18.0
    assert isinstance(get_oracle('dummy', cfg, MCSPERTable()), DummyOracle)
    assert isinstance(get_oracle('free-space', cfg), FreeSpaceOracle)
    with pytest.raises(ConfigError):
        get_oracle('LCMV', cfg)
