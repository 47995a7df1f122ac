import copy
import logging
import math
import random
from dataclasses import dataclass

from mmwsim.config import default_params
from mmwsim.errors import MalformedFlowConfig

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────
#     FLOW RECORDS
# ────────────────────────────────────────────────────────────

@dataclass
class Flow:
    slots:     tuple          # slot indices over which the payload is spread
    th:        float          # average demanded throughput over `slots` (bps)
    payload:   int            # total bits of the packet
    deadline:  int            # last slot where delivery still counts
    remaining: int = None     # bits still to deliver
    failed:    bool = False
    success:   bool = False

    def __post_init__(self):
        self.slots = tuple(self.slots)
        if self.remaining is None:
            self.remaining = self.payload

    @property
    def arrival(self) -> int:
        return self.slots[0]

    @property
    def terminal(self) -> bool:
        return self.failed or self.success

    def active_at(self, t: int) -> bool:
        return not self.terminal and t in self.slots


def _check_flow(user: int, idx: int, flow) -> None:
    where = f"user {user}, flow {idx}"
    if not isinstance(flow, Flow):
        raise MalformedFlowConfig(f"{where}: expected Flow, got {type(flow).__name__}")
    if not flow.slots:
        raise MalformedFlowConfig(f"{where}: empty slot range")
    if any(not isinstance(s, int) or s < 1 for s in flow.slots):
        raise MalformedFlowConfig(f"{where}: slot indices must be positive integers")
    if any(b <= a for a, b in zip(flow.slots, flow.slots[1:])):
        raise MalformedFlowConfig(f"{where}: slot range must be strictly increasing")
    if flow.deadline < flow.slots[-1]:
        raise MalformedFlowConfig(f"{where}: deadline {flow.deadline} before last slot {flow.slots[-1]}")
    if not isinstance(flow.payload, int) or flow.payload < 1:
        raise MalformedFlowConfig(f"{where}: payload must be a positive integer")
    if not isinstance(flow.remaining, int) or not 0 <= flow.remaining <= flow.payload:
        raise MalformedFlowConfig(f"{where}: remaining bits must be in [0, payload]")
    if not flow.th > 0:
        raise MalformedFlowConfig(f"{where}: target throughput must be > 0")
    if flow.failed and flow.success:
        raise MalformedFlowConfig(f"{where}: flow cannot be both failed and successful")
    # success and a drained payload go together
    if flow.success and flow.remaining != 0:
        raise MalformedFlowConfig(f"{where}: successful flow still has {flow.remaining} bits left")
    if flow.remaining == 0 and not flow.success:
        raise MalformedFlowConfig(f"{where}: drained flow is not marked successful")


class FlowStore:
    """
    Per-user flow lists, users numbered 1..n_users.

    Only the Slot Accountant changes `remaining`; the distributor and
    `finalize` may set the `failed` flag.
    """

    def __init__(self, n_users: int, flows: dict = None):
        if not isinstance(n_users, int) or n_users < 1:
            raise MalformedFlowConfig(f"n_users must be a positive integer, got {n_users!r}")
        self.n_users = n_users
        self.flows = {u: [] for u in range(1, n_users + 1)}
        for user, user_flows in (flows or {}).items():
            if user not in self.flows:
                raise MalformedFlowConfig(f"user id {user!r} outside 1..{n_users}")
            self.flows[user] = list(user_flows)
        self.validate()

    def validate(self) -> None:
        for user, user_flows in self.flows.items():
            for idx, flow in enumerate(user_flows):
                _check_flow(user, idx, flow)

    def users(self) -> list:
        return list(self.flows)

    def flows_of(self, user: int) -> list:
        return self.flows[user]

    def get(self, user: int, idx: int) -> Flow:
        return self.flows[user][idx]

    def __iter__(self):
        for user, user_flows in self.flows.items():
            for idx, flow in enumerate(user_flows):
                yield user, idx, flow

    def __len__(self):
        return sum(len(f) for f in self.flows.values())

    def unresolved(self) -> list:
        return [(u, i, f) for u, i, f in self if not f.terminal]

    def finalize(self, t: int) -> int:
        """Mark every unresolved flow failed at simulation end; return how many."""
        count = 0
        for user, idx, flow in self.unresolved():
            flow.failed = True
            count += 1
            logger.debug("slot %d: user %d flow %d unresolved at end (%d bits left)",
                         t, user, idx, flow.remaining)
        return count

    def copy(self) -> 'FlowStore':
        return copy.deepcopy(self)


# ────────────────────────────────────────────────────────────
#     FLOW GENERATION (periodic / aperiodic)
# ────────────────────────────────────────────────────────────

def make_flow(arrival_slot: int, payload_bits: int, deadline_slots: int, slot_ms: float) -> Flow:
    """Spread `payload_bits` uniformly over `deadline_slots` slots starting at `arrival_slot`."""
    deadline = arrival_slot + deadline_slots - 1
    slots = tuple(range(arrival_slot, deadline + 1))
    th = payload_bits / (len(slots) * slot_ms * 1e-3)
    return Flow(slots=slots, th=th, payload=payload_bits, deadline=deadline)


def generate_periodic(period_ms: float, payload_bits: int, deadline_slots: int,
                      slot_ms: float, n_slots: int, rng: random.Random) -> list:
    """
    Periodic packets for one user:
      - random initial phase in [0, period_ms) to avoid synchronous bursts
      - one flow per period until the simulation horizon
    """
    flows = []
    t = rng.uniform(0, period_ms)
    while True:
        arrival = int(t // slot_ms) + 1
        if arrival >= n_slots:
            break
        flows.append(make_flow(arrival, payload_bits, deadline_slots, slot_ms))
        t += period_ms
    return flows


def generate_aperiodic(rate_lambda: float, payload_bits: int, deadline_slots: int,
                       slot_ms: float, n_slots: int, rng: random.Random) -> list:
    """Poisson arrivals with mean rate `rate_lambda` (1/ms)."""
    flows = []
    t = 0.0
    while True:
        t += rng.expovariate(rate_lambda)
        arrival = int(t // slot_ms) + 1
        if arrival >= n_slots:
            break
        flows.append(make_flow(arrival, payload_bits, deadline_slots, slot_ms))
    return flows


def build_flow_store(params: dict, rng: random.Random = None) -> FlowStore:
    """
    Populate a FlowStore for every user according to `traffic_type`.
    Each user gets its own period (or rate) drawn within the configured spread.
    """
    cfg = default_params.copy()
    cfg.update(params)
    if rng is None:
        rng = random.Random(cfg['seed'])

    slot_ms = cfg['slot_ms']
    deadline_slots = max(1, math.ceil(cfg['deadline_ms'] / slot_ms))
    flows = {}
    for user in range(1, cfg['n_users'] + 1):
        if cfg['traffic_type'] == 'periodic':
            spread = cfg['period_spread_pct']
            period = cfg['period_ms'] * (rng.uniform(1.0 - spread, 1.0 + spread) if spread > 0 else 1.0)
            flows[user] = generate_periodic(period, cfg['payload_bits'], deadline_slots,
                                            slot_ms, cfg['n_slots'], rng)
        else:
            spread = cfg['lambda_spread_pct']
            lam = cfg['lambda_per_ms'] * (rng.uniform(1.0 - spread, 1.0 + spread) if spread > 0 else 1.0)
            flows[user] = generate_aperiodic(lam, cfg['payload_bits'], deadline_slots,
                                             slot_ms, cfg['n_slots'], rng)
        logger.debug("user %d: %d flows generated", user, len(flows[user]))

    return FlowStore(cfg['n_users'], flows)
