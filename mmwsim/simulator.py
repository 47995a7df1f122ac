import logging
import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from mmwsim.accountant import SlotAccountant
from mmwsim.candidates import CandidateSet, build_candidate_sets, validate_candidate_set
from mmwsim.channel import LinkQualityOracle, get_oracle
from mmwsim.config import build_params
from mmwsim.distributor import distribute_flows
from mmwsim.errors import NoFeasibleMCS, OracleUnavailable
from mmwsim.link_adaptation import MCSPERTable, get_policy
from mmwsim.outcomes import PacketOutcomeSampler
from mmwsim.traffic import FlowStore, build_flow_store

logger = logging.getLogger(__name__)


class SlotState(Enum):
    SELECTING = 'selecting'
    EVALUATING = 'evaluating'
    COMMITTING = 'committing'
    SKIPPING = 'skipping'


def acceptance_test(rates, demands, threshold: float) -> bool:
    """True when every user reaches at least `threshold` of its demand."""
    ratios = np.asarray(rates, dtype=float) / np.asarray(demands, dtype=float)
    return bool(np.all(ratios >= threshold))


# ────────────────────────────────────────────────────────────
#    RESULT STRUCTURES
# ────────────────────────────────────────────────────────────

@dataclass
class Evaluation:
    candidate: CandidateSet
    sinr_db:   np.ndarray
    mcs:       list         # MCSParams, or None where no MCS was feasible
    rates:     np.ndarray   # bps per user, 0 where no MCS was feasible
    per:       np.ndarray

    def ratios(self) -> np.ndarray:
        return self.rates / np.asarray(self.candidate.demands, dtype=float)

    def accepted(self, threshold: float) -> bool:
        return acceptance_test(self.rates, self.candidate.demands, threshold)


@dataclass
class SimulationResult:
    flows:         FlowStore    # terminal flow states
    base_flows:    FlowStore    # flows as they were before the first slot
    records:       list         # SlotRecord per simulated slot, in order
    last_slot:     int
    last_selected: dict         # user -> last flow index served

    def _matrix(self, field: str) -> np.ndarray:
        if not self.records:
            return np.zeros((0, self.flows.n_users))
        return np.array([getattr(r, field) for r in self.records], dtype=float)

    def tx_bits_matrix(self) -> np.ndarray:
        return self._matrix('tx_bits')

    def throughput_matrix(self) -> np.ndarray:
        return self._matrix('throughput')

    def capacity_matrix(self) -> np.ndarray:
        return self._matrix('capacity')


# ────────────────────────────────────────────────────────────
#    SCHEDULER LOOP
# ────────────────────────────────────────────────────────────

class Scheduler:
    """
    Slot-by-slot scheduling engine.

    Every slot goes SELECTING -> EVALUATING -> COMMITTING or SKIPPING.
    Candidate sets are evaluated in rank order without touching the
    FlowStore; the first accepted one is committed, none accepted means an
    idle slot. The slot log is owned here and only grows.
    """

    def __init__(self, params: dict, store: FlowStore, oracle: LinkQualityOracle = None,
                 table: MCSPERTable = None, policy=None, sampler: PacketOutcomeSampler = None):
        self.cfg = params
        self.store = store
        self.base_flows = store.copy()
        self.table = table or MCSPERTable()
        self.policy = policy or get_policy(params['mcs_policy'])
        self.oracle = oracle or get_oracle(params['bf_algorithm'], params, self.table)
        self.sampler = sampler or PacketOutcomeSampler(params['seed'])

        self.records = []
        self.accountant = SlotAccountant(store, self.records)
        self.selection = {}
        self.t = 1

    # -- evaluation (no side effects) ------------------------------------

    def problem_for(self, t: int, candidate: CandidateSet) -> dict:
        # demanded spectral efficiency, or the linear SNR reaching it
        min_obj = np.asarray(candidate.demands, dtype=float) / self.cfg['bandwidth_hz']
        if self.cfg['min_obj_is_snr']:
            min_obj = 2.0 ** min_obj - 1.0
        return {
            'slot': t,
            'min_obj': min_obj,
            'min_obj_is_snr': self.cfg['min_obj_is_snr'],
        }

    def evaluate(self, t: int, candidate: CandidateSet) -> Evaluation:
        sinr_db = self.oracle.evaluate(candidate, self.problem_for(t, candidate))
        sinr_db = np.asarray(sinr_db, dtype=float)
        if sinr_db.shape != (len(candidate),):
            raise OracleUnavailable(
                f"oracle returned {sinr_db.size} SINR values for {len(candidate)} users")

        choices = []
        for user, sinr in zip(candidate.users, sinr_db):
            try:
                choices.append(self.policy.select(sinr, self.cfg['target_per'], self.table))
            except NoFeasibleMCS as exc:
                logger.debug("slot %d: user %d gets zero rate: %s", t, user, exc)
                choices.append(None)

        rates = np.array([m.rate if m else 0.0 for m in choices])
        per = np.array([m.per if m else 1.0 for m in choices])
        return Evaluation(candidate, sinr_db, choices, rates, per)

    def evaluate_ranked(self, t: int, candidates: list):
        """First accepted Evaluation in rank order, or None once the list is exhausted."""
        threshold = self.cfg['acceptance_threshold']
        for rank, candidate in enumerate(candidates):
            validate_candidate_set(candidate, self.store.n_users)
            try:
                evaluation = self.evaluate(t, candidate)
            except OracleUnavailable as exc:
                logger.warning("slot %d: candidate %s skipped: %s", t, candidate.users, exc)
                continue
            if evaluation.accepted(threshold):
                logger.debug("slot %d: candidate #%d %s accepted", t, rank, candidate.users)
                return evaluation
            logger.debug("slot %d: candidate #%d %s rejected, ratios %s",
                         t, rank, candidate.users, np.round(evaluation.ratios(), 3))
        return None

    # -- commit -------------------------------------------------------------

    def commit(self, t: int, evaluation: Evaluation):
        candidate = evaluation.candidate
        slot_ms = self.cfg['slot_ms']
        slot_s = slot_ms * 1e-3

        delivered, throughput, capacity = {}, {}, {}
        for user, rate in zip(candidate.users, evaluation.rates):
            flow = self.store.get(user, self.selection[user].index)
            # 1) Bits the link can carry this slot, capped by what is left
            bits = min(flow.remaining, int(math.floor(rate * slot_ms / 1000.0)))
            delivered[user] = bits
            throughput[user] = min(bits / slot_s, rate)
            capacity[user] = float(rate)

        # 2) Packet errors wipe out the whole slot for the affected users
        ok = set(self.sampler.draw(candidate.users, evaluation.per))
        for user in candidate.users:
            if user not in ok:
                logger.debug("slot %d: user %d packet lost", t, user)
                delivered[user] = 0
                throughput[user] = 0.0

        return self.accountant.commit(t, self.selection, delivered, throughput, capacity)

    # -- loop ---------------------------------------------------------------

    def step(self) -> SlotState:
        t = self.t
        logger.debug("** slot %d", t)

        # SELECTING
        self.selection = distribute_flows(t, self.store, self.selection, self.cfg['aggregate_flows'])
        candidates = build_candidate_sets(t, self.selection, self.cfg['max_candidates'])

        # EVALUATING
        evaluation = self.evaluate_ranked(t, candidates) if candidates else None

        # COMMITTING / SKIPPING
        if evaluation is not None:
            self.commit(t, evaluation)
            state = SlotState.COMMITTING
        else:
            self.accountant.skip(t)
            state = SlotState.SKIPPING

        self.t += 1
        return state

    def run(self) -> SimulationResult:
        while self.t < self.cfg['n_slots']:
            self.step()

        last_slot = self.t - 1
        self.store.finalize(last_slot)
        ok = sum(1 for _, _, f in self.store if f.success)
        logger.info("simulation ended at slot %d: %d/%d flows delivered, %d failed",
                    last_slot, ok, len(self.store), len(self.store) - ok)
        return SimulationResult(
            flows=self.store,
            base_flows=self.base_flows,
            records=list(self.records),
            last_slot=last_slot,
            last_selected=dict(self.accountant.last_selected),
        )


def run_scenario(params: dict = None, flows=None, oracle: LinkQualityOracle = None,
                 table: MCSPERTable = None) -> SimulationResult:
    """
    Build configuration and flows, then run the scheduler to the horizon.

    `flows` may be a FlowStore or a dict user -> list of Flow; when omitted
    the traffic generator produces them from the configuration.
    """
    cfg = build_params(params)
    if flows is None:
        store = build_flow_store(cfg)
    elif isinstance(flows, FlowStore):
        store = flows
    else:
        store = FlowStore(cfg['n_users'], flows)
    cfg['n_users'] = store.n_users

    scheduler = Scheduler(cfg, store, oracle=oracle, table=table)
    return scheduler.run()
