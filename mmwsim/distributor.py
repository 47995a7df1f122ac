import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedFlow:
    index:    int       # flow whose bit counters are updated this slot
    th:       float     # demand used for scheduling (bps), summed when aggregating
    deadline: int       # nearest deadline among `members`
    members:  tuple     # indices of the flows behind `th`


def expire_flows(t: int, store) -> int:
    """Mark failed every unresolved flow whose deadline is already behind `t`."""
    expired = 0
    for user, idx, flow in store.unresolved():
        if t > flow.deadline:
            flow.failed = True
            expired += 1
            logger.debug("slot %d: user %d flow %d missed deadline %d (%d bits left)",
                         t, user, idx, flow.deadline, flow.remaining)
    return expired


def distribute_flows(t: int, store, prev_selection: dict = None, aggregate: bool = False) -> dict:
    """
    Pick the flow each user is served with in slot `t`.

      - flows past their deadline are resolved as failed first
      - eligible flows: not terminal and `t` inside their slot range
      - the selected flow is the one with the earliest deadline (lowest index on ties)
      - with `aggregate`, the demand is the sum over all eligible flows
    Returns dict user -> SelectedFlow, or None for a silent user.
    """
    expire_flows(t, store)
    prev_selection = prev_selection or {}

    selection = {}
    for user in store.users():
        eligible = [(flow.deadline, idx) for idx, flow in enumerate(store.flows_of(user))
                    if flow.active_at(t)]
        if not eligible:
            selection[user] = None
            continue

        deadline, idx = min(eligible)
        if aggregate and len(eligible) > 1:
            members = tuple(sorted(i for _, i in eligible))
            th = sum(store.get(user, i).th for i in members)
        else:
            members = (idx,)
            th = store.get(user, idx).th
        selection[user] = SelectedFlow(index=idx, th=th, deadline=deadline, members=members)

        prev = prev_selection.get(user)
        if prev is not None and prev.index != idx:
            logger.debug("slot %d: user %d switches from flow %d to flow %d",
                         t, user, prev.index, idx)
    return selection
