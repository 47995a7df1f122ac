import pytest

from mmwsim.candidates import (CandidateSet, build_candidate_sets, urgency,
                               validate_candidate_set)
from mmwsim.distributor import SelectedFlow
from mmwsim.errors import InvalidCandidateSet


def sel(deadline, th=100.0):
    return SelectedFlow(index=0, th=th, deadline=deadline, members=(0,))


def test_no_selection_gives_no_candidates():
    assert build_candidate_sets(1, {1: None, 2: None}) == []


def test_urgency_is_inverse_time_to_deadline():
    assert urgency(5, 5) == 1.0
    assert urgency(1, 10) == pytest.approx(0.1)


def test_ranking_full_set_then_fallbacks():
    selection = {1: sel(10), 2: sel(2), 3: None, 4: sel(5)}
    cands = build_candidate_sets(1, selection)
    users = [c.users for c in cands]
    # urgency: user 2 = 1/2, user 4 = 1/5, user 1 = 1/10
    assert users[0] == (2, 4, 1)
    assert users[1] == (2, 4)
    assert users[2] == (2,)
    assert set(users) == {(2, 4, 1), (2, 4), (2,), (4,), (1,)}
    priorities = [c.priority for c in cands]
    assert priorities == sorted(priorities, reverse=True)
    assert all(3 not in c.users for c in cands)


def test_equal_urgency_orders_by_user_id():
    selection = {1: sel(1), 2: sel(3), 3: sel(3)}
    cands = build_candidate_sets(1, selection)
    assert [c.users for c in cands] == [(1, 2, 3), (1, 2), (1,), (2,), (3,)]


def test_demands_follow_selection():
    cands = build_candidate_sets(1, {1: sel(4, th=10.0), 2: sel(4, th=30.0)})
    full = cands[0]
    assert full.users == (1, 2)
    assert full.demands == (10.0, 30.0)


def test_max_candidates_truncates():
    selection = {u: sel(u) for u in range(1, 6)}
    assert len(build_candidate_sets(1, selection, max_candidates=3)) == 3


@pytest.mark.parametrize("users", [(), (1, 1), (0,), (1, 4)])
def test_invalid_candidate_sets(users):
    cand = CandidateSet(users=users, demands=(1.0,) * len(users), priority=0.0)
    with pytest.raises(InvalidCandidateSet):
        validate_candidate_set(cand, n_users=3)


def test_valid_candidate_set_passes():
    validate_candidate_set(CandidateSet(users=(3, 1), demands=(1.0, 2.0), priority=1.0), n_users=3)
