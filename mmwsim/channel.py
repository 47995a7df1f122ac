import logging
import math
import random

import numpy as np

from mmwsim.config import SNR_RANGE_DB
from mmwsim.errors import ConfigError, OracleUnavailable

logger = logging.getLogger(__name__)

SPEED_OF_LIGHT = 3e8


def lin_to_db(x):
    return 10 * np.log10(np.maximum(x, 1e-30))


def db_to_lin(x_db):
    return 10 ** (np.asarray(x_db, dtype=float) / 10.0)


def dbm_to_watts(p_dbm: float) -> float:
    return 10 ** ((p_dbm - 30) / 10.0)


def free_space_gain(d_m, wavelength_m: float):
    """Friis channel gain (lambda / (4 pi d))^2, linear."""
    return (wavelength_m / (4 * math.pi * np.asarray(d_m, dtype=float))) ** 2


def init_distances(n_users: int, radius_m: float, rng: random.Random) -> list:
    # uniform over the cell area, at least 1 m from the array
    return [max(radius_m * math.sqrt(rng.random()), 1.0) for _ in range(n_users)]


# ────────────────────────────────────────────────────────────
#     LINK QUALITY ORACLES
# ────────────────────────────────────────────────────────────

class LinkQualityOracle:
    """
    Maps a candidate set to one SINR (dB) per user, in candidate order.

    `problem` carries the per-user objective of the slot:
      - 'min_obj': demanded objective per user (np.ndarray)
      - 'min_obj_is_snr': True when 'min_obj' is a linear SNR target,
        False when it is a spectral efficiency (bits/s/Hz)
    Implementations must not keep state between calls that changes results.
    """
    name = None

    def evaluate(self, candidate, problem: dict) -> np.ndarray:
        raise NotImplementedError

    def _check(self, candidate) -> None:
        if candidate is None or len(candidate.users) == 0:
            raise OracleUnavailable(f"{self.name}: empty candidate set")


class TableOracle(LinkQualityOracle):
    """Constant SINR for every user, used for calibration and regression runs."""

    def __init__(self, sinr_db: float, name: str = 'table'):
        self.sinr_db = float(sinr_db)
        self.name = name

    def evaluate(self, candidate, problem):
        self._check(candidate)
        return np.full(len(candidate.users), self.sinr_db)


class DummyOracle(LinkQualityOracle):
    """Returns exactly the SINR that meets each user's objective, clipped to the table range."""
    name = 'dummy'

    def __init__(self, snr_bounds_db: tuple = SNR_RANGE_DB[:2]):
        self.low, self.high = snr_bounds_db

    def evaluate(self, candidate, problem):
        self._check(candidate)
        min_obj = np.asarray(problem['min_obj'], dtype=float)
        if min_obj.shape != (len(candidate.users),):
            raise OracleUnavailable(f"dummy: {min_obj.size} objectives for {len(candidate.users)} users")
        snr_lin = min_obj if problem.get('min_obj_is_snr') else 2.0 ** min_obj - 1.0
        return np.clip(lin_to_db(snr_lin), self.low, self.high)


class FreeSpaceOracle(LinkQualityOracle):
    """
    Line-of-sight estimate for an array split evenly between the users of a set.

    Each user gets `n_antennas / |S|` elements and `P / |S|` power; its beam
    leaks `sidelobe_db` towards every other user of the set. SINR is
    received power over leaked interference plus thermal noise.
    """
    name = 'free-space'

    def __init__(self, params: dict, rng: random.Random = None):
        distances = params.get('user_distances_m')
        if distances is None:
            rng = rng or random.Random(params.get('seed'))
            distances = init_distances(params['n_users'], params['cell_radius_m'], rng)
        self.distances = {user: float(d) for user, d in enumerate(distances, start=1)}
        logger.debug("free-space oracle distances: %s", self.distances)

        self.wavelength = SPEED_OF_LIGHT / params['carrier_hz']
        self.n_antennas = params['n_antennas']
        self.tx_power_w = dbm_to_watts(params['tx_power_dbm'])
        noise_dbm = (params['noise_density_dbm_hz']
                     + 10 * math.log10(params['bandwidth_hz'])
                     + params['noise_figure_db'])
        self.noise_w = dbm_to_watts(noise_dbm)
        self.sidelobe = float(db_to_lin(params['sidelobe_db']))

    def evaluate(self, candidate, problem):
        self._check(candidate)
        missing = [u for u in candidate.users if u not in self.distances]
        if missing:
            raise OracleUnavailable(f"free-space: no position for users {missing}")

        n = len(candidate.users)
        # 1) Channel gain per user
        ch_gain = free_space_gain([self.distances[u] for u in candidate.users], self.wavelength)
        # 2) Power and subarray gain per beam
        p_beam = self.tx_power_w / n
        array_gain = self.n_antennas / n
        # 3) Wanted signal and leakage from the other n-1 beams
        signal = p_beam * array_gain * ch_gain
        interference = (n - 1) * p_beam * array_gain * self.sidelobe * ch_gain
        return lin_to_db(signal / (interference + self.noise_w))


def get_oracle(name: str, params: dict, table=None) -> LinkQualityOracle:
    """Build the oracle for `name` once, at configuration time."""
    if name.startswith('table-'):
        sinr_table = params.get('table_sinr_db', {})
        if name not in sinr_table:
            raise ConfigError(f"no table SINR configured for {name!r}")
        return TableOracle(sinr_table[name], name=name)
    if name == 'dummy':
        return DummyOracle(table.snr_bounds if table is not None else SNR_RANGE_DB[:2])
    if name == 'free-space':
        return FreeSpaceOracle(params)
    raise ConfigError(f"unknown beamforming algorithm {name!r}")
