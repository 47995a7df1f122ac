from dataclasses import dataclass

import numpy as np

from mmwsim.config import MCS_TABLE, SNR_RANGE_DB, PER_ALPHA
from mmwsim.errors import ConfigError, NoFeasibleMCS


@dataclass
class MCSParams:
    index: int      # MCS index from the table
    per:   float    # packet error rate at the evaluated SINR
    rate:  float    # PHY bit rate (bps)


def estimate_per(sinr_db, snr_ref_db, alpha: float = PER_ALPHA):
    """
    Exponential PER model: PER = exp(-alpha * (sinr - snr_ref)), clipped to [0, 1].

    `snr_ref_db` is the SINR at which the MCS stops working at all; each
    `1/alpha` dB above it divides the PER by e.
    """
    exponent = -alpha * (np.asarray(sinr_db, dtype=float) - np.asarray(snr_ref_db, dtype=float))
    return np.clip(np.exp(exponent), 0.0, 1.0)


class MCSPERTable:
    """Precomputed PER per (MCS, SINR grid point) plus the rate of each MCS."""

    def __init__(self, mcs_table: dict = None, snr_range: tuple = SNR_RANGE_DB, alpha: float = PER_ALPHA):
        table = MCS_TABLE if mcs_table is None else mcs_table
        if not table:
            raise ConfigError("MCS table is empty")
        self.indices = np.array(sorted(table), dtype=int)
        self.rates   = np.array([table[i][0] for i in self.indices], dtype=float)
        self.snr_ref = np.array([table[i][1] for i in self.indices], dtype=float)

        start, stop, step = snr_range
        self.snr_db = np.arange(start, stop + step / 2, step)
        # rows: MCS, columns: SINR grid
        self.per = estimate_per(self.snr_db[np.newaxis, :], self.snr_ref[:, np.newaxis], alpha)

    @property
    def snr_bounds(self) -> tuple:
        return float(self.snr_db[0]), float(self.snr_db[-1])

    def per_at(self, sinr_db: float) -> np.ndarray:
        """PER of every MCS at `sinr_db`, linearly interpolated on the grid."""
        return np.array([np.interp(sinr_db, self.snr_db, row) for row in self.per])

    def nearest_column(self, sinr_db: float) -> int:
        return int(np.argmin(np.abs(self.snr_db - sinr_db)))


# ────────────────────────────────────────────────────────────
#     MCS SELECTION POLICIES
# ────────────────────────────────────────────────────────────

class MCSPolicy:
    name = None

    def per_curve(self, sinr_db: float, table: MCSPERTable) -> np.ndarray:
        raise NotImplementedError

    def select(self, sinr_db: float, target_per: float, table: MCSPERTable) -> MCSParams:
        """Highest-rate MCS whose PER does not exceed `target_per`."""
        if not np.isfinite(sinr_db):
            raise NoFeasibleMCS(f"SINR {sinr_db} dB is not finite")
        per = self.per_curve(sinr_db, table)
        feasible = np.flatnonzero(per <= target_per)
        if feasible.size == 0:
            raise NoFeasibleMCS(f"no MCS reaches PER <= {target_per} at {sinr_db:.2f} dB")
        best = feasible[np.argmax(table.rates[feasible])]
        return MCSParams(index=int(table.indices[best]), per=float(per[best]), rate=float(table.rates[best]))


class BestRatePolicy(MCSPolicy):
    """PER read at the exact SINR (interpolated between grid points)."""
    name = 'best-rate'

    def per_curve(self, sinr_db, table):
        return table.per_at(sinr_db)


class NearestPolicy(MCSPolicy):
    """PER read at the grid point closest to the SINR."""
    name = 'nearest'

    def per_curve(self, sinr_db, table):
        return table.per[:, table.nearest_column(sinr_db)]


POLICIES = {cls.name: cls for cls in (BestRatePolicy, NearestPolicy)}


def get_policy(name: str) -> MCSPolicy:
    try:
        return POLICIES[name]()
    except KeyError:
        raise ConfigError(f"unknown MCS policy {name!r}") from None
