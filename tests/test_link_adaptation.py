import math

import numpy as np
import pytest

from mmwsim.config import MCS_TABLE
from mmwsim.errors import ConfigError, NoFeasibleMCS
from mmwsim.link_adaptation import (BestRatePolicy, MCSPERTable, NearestPolicy,
                                    estimate_per, get_policy)


def test_per_model_is_clipped_and_decreasing():
    assert estimate_per(-10.0, 0.0) == 1.0
    assert estimate_per(0.0, 0.0) == 1.0
    assert estimate_per(4.0, 0.0) == pytest.approx(math.exp(-2.0))
    curve = estimate_per(np.arange(0, 20), 0.0)
    assert np.all(np.diff(curve) <= 0)


def test_default_table_shape():
    table = MCSPERTable()
    assert table.per.shape == (len(MCS_TABLE), table.snr_db.size)
    assert table.snr_bounds == (-5.0, 30.0)
    assert list(table.indices) == sorted(MCS_TABLE)


def test_best_rate_picks_fastest_mcs_meeting_target():
    table = MCSPERTable()
    choice = BestRatePolicy().select(14.0, 0.1, table)
    # MCS 7 has reference 9 dB: PER exp(-2.5) ~ 0.082; MCS 8 (10.5 dB) gives ~0.17
    assert choice.index == 7
    assert choice.rate == 1925.0e6
    assert choice.per == pytest.approx(math.exp(-2.5))


def test_high_sinr_reaches_top_mcs():
    choice = BestRatePolicy().select(30.0, 0.1, MCSPERTable())
    assert choice.index == 12


def test_no_feasible_mcs_raises():
    with pytest.raises(NoFeasibleMCS):
        BestRatePolicy().select(2.0, 0.1, MCSPERTable())
    with pytest.raises(NoFeasibleMCS):
        BestRatePolicy().select(float('-inf'), 0.1, MCSPERTable())


def test_nearest_snaps_to_grid():
    table = MCSPERTable()
    # 13.7 dB snaps to 13.5 dB, where MCS 7 gives exp(-2.25) ~ 0.105 > 0.1;
    # interpolated at 13.7 dB it is ~0.096
    nearest = NearestPolicy().select(13.7, 0.1, table)
    best = BestRatePolicy().select(13.7, 0.1, table)
    assert nearest.index == 6
    assert best.index == 7


def test_policies_are_swappable_by_name():
    assert isinstance(get_policy('best-rate'), BestRatePolicy)
    assert isinstance(get_policy('nearest'), NearestPolicy)
    with pytest.raises(ConfigError):
        get_policy('greedy')
