import pytest

from pollbooth.services import booths as booth_service
from pollbooth.services import voting
from pollbooth.services.results import _percentage, booth_statistics, can_view_results, compute_results, results_view


def test_empty_booth_reports_zero_percentages(make_booth):
    booth = make_booth(candidates=("A", "B", "C"))

    results = compute_results(booth)

    assert results["total_votes"] == 0
    assert [c["percentage"] for c in results["candidates"]] == [0, 0, 0]
    assert [c["index"] for c in results["candidates"]] == [0, 1, 2]


def test_percentages_are_rounded_to_two_places(make_booth, make_user, join):
    booth = make_booth()
    users = [make_user() for _ in range(3)]
    join(booth, *users)
    for user, index in zip(users, (0, 0, 1)):
        voting.cast_vote(booth, user, index)

    candidates = compute_results(booth)["candidates"]
    assert candidates[0]["percentage"] == 66.67
    assert candidates[1]["percentage"] == 33.33


def test_statistics(make_booth, make_user, join):
    booth = make_booth()
    users = [make_user() for _ in range(4)]
    join(booth, *users)
    voting.cast_vote(booth, users[0], 1)

    stats = booth_statistics(booth)
    assert stats == {
        "total_members": 4,
        "total_voted": 1,
        "voting_percentage": 25.0,
        "total_votes": 1,
        "candidates_count": 2,
    }


def test_visibility_rules(make_booth, make_user, join, creator):
    booth = make_booth(results_visible_to_voters=False)
    member, outsider = make_user(), make_user()
    join(booth, member)

    assert can_view_results(booth, creator.id) is True
    assert can_view_results(booth, member.id) is False
    assert can_view_results(booth, outsider.id) is False

    booth_service.update_settings(booth, creator.id, {"results_visible_to_voters": True})
    assert can_view_results(booth, member.id) is True
    assert can_view_results(booth, outsider.id) is False


def test_results_view_includes_caller_state(make_booth, make_user, join, creator):
    booth = make_booth()
    user = make_user()
    join(booth, user)
    voting.cast_vote(booth, user, 0)

    view = results_view(booth, user.id)
    assert view["user_has_voted"] is True
    assert view["is_creator"] is False
    assert view["voting_allowed"] == {"allowed": True, "reason": None}
    assert view["booth_name"] == booth.name

    booth_service.toggle_status(booth, creator.id)
    closed = results_view(booth, creator.id)
    assert closed["is_creator"] is True
    assert closed["voting_allowed"]["allowed"] is False
    assert closed["candidates"][0]["vote_count"] == 1


@pytest.mark.parametrize(
    "part, whole, expected",
    [(1, 800, 0.13), (1, 8, 12.5), (2, 3, 66.67), (1, 3, 33.33), (1, 1, 100.0), (0, 5, 0.0), (0, 0, 0)],
)
def test_percentage_rounds_half_up(part, whole, expected):
    assert _percentage(part, whole) == expected
