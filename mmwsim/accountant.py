import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotRecord:
    slot:       int
    tx_bits:    tuple       # bits delivered per user, index 0 is user 1
    throughput: tuple       # throughput achieved per user (bps)
    capacity:   tuple       # achievable rate of the committed users (bps)
    served:     tuple = ()  # users whose packet got through

    @classmethod
    def idle(cls, slot: int, n_users: int) -> 'SlotRecord':
        zeros = (0,) * n_users
        return cls(slot=slot, tx_bits=zeros, throughput=(0.0,) * n_users,
                   capacity=(0.0,) * n_users)


class SlotAccountant:
    """
    Applies committed slot results to the FlowStore and the slot log.

    The only place where `Flow.remaining` is decremented.
    """

    def __init__(self, store, records: list):
        self.store = store
        self.records = records
        self.last_selected = {u: None for u in store.users()}

    def commit(self, t: int, selection: dict, delivered: dict, throughput: dict,
               capacity: dict) -> SlotRecord:
        """
        Record slot `t`.
          - delivered:  user -> bits that got through (failed users absent or 0)
          - throughput: user -> bps achieved
          - capacity:   user -> achievable rate of every committed user
        """
        n = self.store.n_users
        tx_bits = [0] * n
        th = [0.0] * n
        cap = [0.0] * n

        for user, bits in delivered.items():
            if bits <= 0:
                continue
            flow = self.store.get(user, selection[user].index)
            if flow.terminal:
                logger.warning("slot %d: user %d flow %d already resolved, %d bits ignored",
                               t, user, selection[user].index, bits)
                continue
            # 1) Decrement, never below zero
            bits = min(bits, flow.remaining)
            flow.remaining -= bits
            tx_bits[user - 1] = bits
            th[user - 1] = throughput.get(user, 0.0)
            # 2) Resolve the flow when everything got through in time
            if flow.remaining == 0 and t <= flow.deadline:
                flow.success = True
                logger.debug("slot %d: user %d flow %d delivered", t, user, selection[user].index)

        for user, rate in capacity.items():
            cap[user - 1] = rate

        # 3) Bookkeeping of the last flow served per user
        for user, sel in selection.items():
            if sel is not None:
                self.last_selected[user] = sel.index

        record = SlotRecord(slot=t, tx_bits=tuple(tx_bits), throughput=tuple(th),
                            capacity=tuple(cap),
                            served=tuple(u for u in sorted(delivered) if tx_bits[u - 1] > 0))
        self.records.append(record)
        return record

    def skip(self, t: int) -> SlotRecord:
        record = SlotRecord.idle(t, self.store.n_users)
        self.records.append(record)
        return record
