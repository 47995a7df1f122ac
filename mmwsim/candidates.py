from dataclasses import dataclass

from mmwsim.errors import InvalidCandidateSet


@dataclass(frozen=True)
class CandidateSet:
    users:    tuple     # user ids, no duplicates
    demands:  tuple     # aggregate demanded throughput per user (bps)
    priority: float     # summed urgency of the users

    def __len__(self):
        return len(self.users)


def validate_candidate_set(candidate: CandidateSet, n_users: int) -> None:
    users = candidate.users
    if not users:
        raise InvalidCandidateSet("empty candidate set")
    if len(set(users)) != len(users):
        raise InvalidCandidateSet(f"duplicate user ids in {users}")
    bad = [u for u in users if not 1 <= u <= n_users]
    if bad:
        raise InvalidCandidateSet(f"user ids {bad} outside 1..{n_users}")
    if len(candidate.demands) != len(users):
        raise InvalidCandidateSet(f"{len(candidate.demands)} demands for {len(users)} users")


def urgency(t: int, deadline: int) -> float:
    # inverse of the time to deadline, the deadline slot counting as one
    return 1.0 / max(deadline - t + 1, 1)


def build_candidate_sets(t: int, selection: dict, max_candidates: int = None) -> list:
    """
    Enumerate groupings of users for concurrent service in slot `t`.

    Proposals are the prefixes of the users ordered by decreasing urgency
    (full set, then dropping the least urgent user one at a time) and every
    single-user set. They are ranked by summed urgency, larger sets first on
    ties. Only users with a selected flow take part.
    """
    active = {u: sel for u, sel in selection.items() if sel is not None}
    if not active:
        return []

    prio = {u: urgency(t, sel.deadline) for u, sel in active.items()}
    ordered = sorted(active, key=lambda u: (-prio[u], u))

    groupings = [tuple(ordered[:k]) for k in range(len(ordered), 0, -1)]
    groupings += [(u,) for u in ordered]

    seen = set()
    candidates = []
    for users in groupings:
        if users in seen:
            continue
        seen.add(users)
        candidates.append(CandidateSet(
            users=users,
            demands=tuple(active[u].th for u in users),
            priority=sum(prio[u] for u in users),
        ))

    candidates.sort(key=lambda c: (-c.priority, -len(c), c.users))
    if max_candidates is not None:
        candidates = candidates[:max_candidates]
    return candidates
