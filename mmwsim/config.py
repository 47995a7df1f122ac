from mmwsim.errors import ConfigError

# IEEE 802.11ad SC PHY: MCS index -> (rate in bps, reference SNR in dB)
# The reference SNR is where the PER model reaches 1.0 (see link_adaptation).
MCS_TABLE = {
    1:  (385.0e6,   1.0),
    2:  (770.0e6,   3.0),
    3:  (962.5e6,   4.0),
    4:  (1155.0e6,  5.0),
    5:  (1251.25e6, 6.0),
    6:  (1540.0e6,  7.5),
    7:  (1925.0e6,  9.0),
    8:  (2310.0e6,  10.5),
    9:  (2502.5e6,  12.0),
    10: (3080.0e6,  14.0),
    11: (3850.0e6,  16.5),
    12: (4620.0e6,  18.5),
}

# SNR grid of the PER table (dB)
SNR_RANGE_DB = (-5.0, 30.0, 0.5)

# Slope of the exponential PER model
PER_ALPHA = 0.5

BF_ALGORITHMS = ('table-CBF', 'table-LCMV', 'table-HEU', 'dummy', 'free-space')
MCS_POLICIES = ('best-rate', 'nearest')
TRAFFIC_TYPES = ('periodic', 'aperiodic')

default_params = {
    'n_users': 4,
    'n_slots': 200,
    'slot_ms': 1.0,
    'bandwidth_hz': 2.16e9,
    'aggregate_flows': False,
    'mcs_policy': 'best-rate',
    'bf_algorithm': 'table-LCMV',
    'acceptance_threshold': 0.7,
    'target_per': 0.1,
    'min_obj_is_snr': True,
    'max_candidates': 8,
    'seed': 0,
    'table_sinr_db': {
        'table-CBF':  8.0,
        'table-LCMV': 14.0,
        'table-HEU':  18.0,
    },
    'traffic_type': 'periodic',
    'period_ms': 10.0,
    'period_spread_pct': 0.3,
    'lambda_per_ms': 0.1,
    'lambda_spread_pct': 0.2,
    'payload_bits': 1_500_000,
    'deadline_ms': 10.0,
    'carrier_hz': 60e9,
    'n_antennas': 64,
    'tx_power_dbm': 10.0,
    'noise_figure_db': 10.0,
    'noise_density_dbm_hz': -174.0,
    'sidelobe_db': -13.0,
    'cell_radius_m': 20.0,
    'user_distances_m': None,
}


def build_params(params: dict = None) -> dict:
    """
    Merge `params` over `default_params` and check the result.

    Unknown keys and out-of-range values raise ConfigError; the simulation
    never starts on a bad configuration.
    """
    cfg = default_params.copy()
    cfg['table_sinr_db'] = dict(default_params['table_sinr_db'])
    if params:
        unknown = sorted(set(params) - set(default_params))
        if unknown:
            raise ConfigError(f"unknown parameters: {', '.join(unknown)}")
        cfg.update(params)

    # 1) Positive sizes and durations
    for key in ('n_users', 'n_slots', 'n_antennas'):
        if not isinstance(cfg[key], int) or cfg[key] < 1:
            raise ConfigError(f"{key} must be a positive integer, got {cfg[key]!r}")
    for key in ('slot_ms', 'bandwidth_hz', 'carrier_hz', 'period_ms',
                'lambda_per_ms', 'deadline_ms', 'cell_radius_m'):
        if cfg[key] <= 0:
            raise ConfigError(f"{key} must be > 0, got {cfg[key]!r}")
    if cfg['payload_bits'] < 1:
        raise ConfigError(f"payload_bits must be >= 1, got {cfg['payload_bits']!r}")

    # 2) Probabilities and ratios
    if not 0.0 <= cfg['target_per'] <= 1.0:
        raise ConfigError(f"target_per must be in [0, 1], got {cfg['target_per']!r}")
    if cfg['acceptance_threshold'] < 0.0:
        raise ConfigError("acceptance_threshold must be >= 0")
    for key in ('period_spread_pct', 'lambda_spread_pct'):
        if not 0.0 <= cfg[key] < 1.0:
            raise ConfigError(f"{key} must be in [0, 1), got {cfg[key]!r}")
    if cfg['max_candidates'] is not None and cfg['max_candidates'] < 1:
        raise ConfigError("max_candidates must be >= 1 or None")

    # 3) Named choices
    if cfg['bf_algorithm'] not in BF_ALGORITHMS:
        raise ConfigError(f"unknown bf_algorithm {cfg['bf_algorithm']!r}")
    if cfg['mcs_policy'] not in MCS_POLICIES:
        raise ConfigError(f"unknown mcs_policy {cfg['mcs_policy']!r}")
    if cfg['traffic_type'] not in TRAFFIC_TYPES:
        raise ConfigError(f"unknown traffic_type {cfg['traffic_type']!r}")

    distances = cfg['user_distances_m']
    if distances is not None:
        if len(distances) != cfg['n_users'] or any(d <= 0 for d in distances):
            raise ConfigError("user_distances_m needs one positive distance per user")
    return cfg
