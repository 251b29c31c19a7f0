from datetime import datetime, timedelta

import pytest


def create_booth(client, headers, **overrides):
    payload = {
        "name": "Class rep election",
        "description": "Pick next year's class representative",
        "candidates": [{"name": "A"}, {"name": "B"}],
        "max_members": 10,
    }
    payload.update(overrides)
    resp = client.post("/api/booths/", json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def join(client, headers, code):
    return client.post("/api/booths/join", json={"invite_code": code}, headers=headers)


def vote(client, headers, booth_id, candidate_index):
    return client.post(f"/api/booths/{booth_id}/vote", json={"candidate_index": candidate_index}, headers=headers)


@pytest.fixture
def owner_headers(creator, auth_headers):
    return auth_headers(creator)


@pytest.fixture
def voter(make_user):
    return make_user(name="Vera Voter")


@pytest.fixture
def voter_headers(voter, auth_headers):
    return auth_headers(voter)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_request_id_is_echoed_or_generated(client):
    echoed = client.get("/health", headers={"X-Request-Id": "abc-123"})
    assert echoed.headers["X-Request-Id"] == "abc-123"

    generated = client.get("/health", headers={"X-Request-Id": "bad id with spaces"})
    assert generated.headers["X-Request-Id"] != "bad id with spaces"
    assert len(generated.headers["X-Request-Id"]) == 36


def test_register_login_me_logout(client):
    resp = client.post(
        "/api/auth/register",
        json={"name": "Ada Lovelace", "email": "Ada@Example.org", "password": "StrongPass123"},
    )
    assert resp.status_code == 201
    assert resp.get_json()["user"]["email"] == "ada@example.org"

    resp = client.post("/api/auth/login", json={"email": "ada@example.org", "password": "StrongPass123"})
    assert resp.status_code == 200
    headers = {"Authorization": f"Bearer {resp.get_json()['access_token']}"}

    me = client.get("/api/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.get_json()["can_create_booth"] is True

    assert client.post("/api/auth/logout", headers=headers).status_code == 200
    revoked = client.get("/api/auth/me", headers=headers)
    assert revoked.status_code == 401
    assert revoked.get_json()["code"] == "TOKEN_REVOKED"


def test_duplicate_registration(client, creator):
    resp = client.post(
        "/api/auth/register",
        json={"name": "Someone Else", "email": creator.email, "password": "StrongPass123"},
    )
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["success"] is False
    assert body["error"] == "Email already registered"


def test_bad_login(client, creator):
    resp = client.post("/api/auth/login", json={"email": creator.email, "password": "WrongPass123"})
    assert resp.status_code == 401


def test_missing_token_uses_error_envelope(client):
    resp = client.get("/api/booths/")
    assert resp.status_code == 401
    body = resp.get_json()
    assert body["success"] is False
    assert body["code"] == "UNAUTHORIZED"
    assert "request_id" in body


def test_full_voting_flow(client, make_user, auth_headers, owner_headers):
    created = create_booth(client, owner_headers, max_members=2)
    booth_id = created["booth"]["id"]
    code = created["invite_code"]
    assert created["invite_link"].endswith(f"/booth/join/{code}")

    voters = [auth_headers(make_user()) for _ in range(3)]
    assert join(client, voters[0], code).status_code == 200
    assert join(client, voters[1], code.lower()).status_code == 200

    full = join(client, voters[2], code)
    assert full.status_code == 400
    assert full.get_json()["error"] == "This booth is full"

    assert vote(client, voters[0], booth_id, 0).status_code == 200
    resp = vote(client, voters[1], booth_id, 1)
    assert resp.status_code == 200
    assert resp.get_json()["candidate_name"] == "B"

    results = client.get(f"/api/booths/{booth_id}/results", headers=voters[0])
    assert results.status_code == 200
    body = results.get_json()
    assert body["total_votes"] == 2
    assert [c["percentage"] for c in body["candidates"]] == [50.0, 50.0]
    assert body["user_has_voted"] is True
    assert body["statistics"]["total_members"] == 2


def test_join_is_idempotent_over_http(client, owner_headers, voter_headers):
    code = create_booth(client, owner_headers)["invite_code"]

    first = join(client, voter_headers, code)
    second = join(client, voter_headers, code)

    assert first.get_json()["message"] == "Successfully joined booth"
    assert second.status_code == 200
    assert second.get_json()["message"] == "You are already a member of this booth"


def test_join_error_codes(client, owner_headers, voter_headers):
    assert join(client, voter_headers, "bad!").status_code == 400
    missing = join(client, voter_headers, "QQQQQQ")
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "Invalid invite code"
    assert client.post("/api/booths/join", json={}, headers=voter_headers).status_code == 400


def test_domain_restricted_join(client, make_user, auth_headers, owner_headers):
    code = create_booth(client, owner_headers, settings={"allowed_email_domains": ["org.edu"]})["invite_code"]

    ok = join(client, auth_headers(make_user(email="sam@org.edu")), code)
    assert ok.status_code == 200

    denied = join(client, auth_headers(make_user(email="sam@gmail.com")), code)
    assert denied.status_code == 403
    body = denied.get_json()
    assert body["code"] == "EMAIL_DOMAIN_NOT_ALLOWED"
    assert body["details"] == {"allowed_domains": ["org.edu"]}


def test_second_vote_rejected_over_http(client, owner_headers, voter_headers):
    created = create_booth(client, owner_headers)
    join(client, voter_headers, created["invite_code"])
    booth_id = created["booth"]["id"]

    assert vote(client, voter_headers, booth_id, 0).status_code == 200
    again = vote(client, voter_headers, booth_id, 1)
    assert again.status_code == 400
    assert again.get_json()["code"] == "ALREADY_VOTED"

    status = client.get(f"/api/booths/{booth_id}/vote/status", headers=voter_headers).get_json()
    assert status["has_voted"] is True
    assert status["candidate_index"] == 0


def test_vote_change_over_http(client, owner_headers, voter_headers):
    created = create_booth(client, owner_headers, settings={"allow_vote_change": True})
    join(client, voter_headers, created["invite_code"])
    booth_id = created["booth"]["id"]

    vote(client, voter_headers, booth_id, 0)
    changed = vote(client, voter_headers, booth_id, 1)
    assert changed.status_code == 200
    assert changed.get_json()["changed"] is True

    results = client.get(f"/api/booths/{booth_id}/results", headers=owner_headers).get_json()
    assert [c["vote_count"] for c in results["candidates"]] == [0, 1]
    assert results["total_votes"] == 1


def test_vote_after_end_time_over_http(client, owner_headers, voter_headers):
    ended = (datetime.utcnow() - timedelta(minutes=5)).isoformat()
    created = create_booth(client, owner_headers, settings={"voting_end_time": ended})
    join(client, voter_headers, created["invite_code"])

    resp = vote(client, voter_headers, created["booth"]["id"], 0)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Voting has ended"


def test_vote_request_validation(client, owner_headers, voter_headers):
    created = create_booth(client, owner_headers)
    join(client, voter_headers, created["invite_code"])
    booth_id = created["booth"]["id"]

    missing = client.post(f"/api/booths/{booth_id}/vote", json={}, headers=voter_headers)
    assert missing.status_code == 400
    assert missing.get_json()["code"] == "VALIDATION_ERROR"

    out_of_range = vote(client, voter_headers, booth_id, 5)
    assert out_of_range.status_code == 400
    assert out_of_range.get_json()["code"] == "INVALID_CANDIDATE"


def test_non_member_vote_is_forbidden(client, owner_headers, voter_headers):
    booth_id = create_booth(client, owner_headers)["booth"]["id"]
    resp = vote(client, voter_headers, booth_id, 0)
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "You must be a member to vote"


def test_unknown_booth(client, owner_headers):
    resp = client.get("/api/booths/00000000-0000-0000-0000-000000000000", headers=owner_headers)
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Booth not found"


@pytest.mark.parametrize(
    "method, suffix, body",
    [
        ("put", "", {"name": "Hijacked booth"}),
        ("put", "/settings", {"public_booth": True}),
        ("post", "/toggle-status", None),
        ("post", "/status", {"status": "closed"}),
        ("post", "/reset-code", None),
        ("get", "/export", None),
        ("delete", "", None),
    ],
)
def test_creator_only_endpoints(client, owner_headers, voter_headers, method, suffix, body):
    created = create_booth(client, owner_headers)
    join(client, voter_headers, created["invite_code"])
    url = f"/api/booths/{created['booth']['id']}{suffix}"

    resp = getattr(client, method)(url, json=body, headers=voter_headers)
    assert resp.status_code == 403
    assert resp.get_json()["code"] == "NOT_BOOTH_CREATOR"


def test_booth_details_by_role(client, owner_headers, voter_headers, auth_headers, make_user):
    created = create_booth(client, owner_headers, settings={"results_visible_to_voters": False})
    booth_id = created["booth"]["id"]
    join(client, voter_headers, created["invite_code"])

    owner_view = client.get(f"/api/booths/{booth_id}", headers=owner_headers).get_json()
    assert owner_view["booth"]["invite_code"] == created["invite_code"]
    assert owner_view["permissions"]["is_creator"] is True

    member_view = client.get(f"/api/booths/{booth_id}", headers=voter_headers).get_json()
    assert "invite_code" not in member_view["booth"]
    assert member_view["booth"]["candidates"][0]["vote_count"] is None
    assert member_view["permissions"]["can_vote"] is True

    outsider = client.get(f"/api/booths/{booth_id}", headers=auth_headers(make_user()))
    assert outsider.status_code == 403


def test_results_visibility(client, owner_headers, voter_headers, auth_headers, make_user):
    created = create_booth(client, owner_headers, settings={"results_visible_to_voters": False})
    booth_id = created["booth"]["id"]
    join(client, voter_headers, created["invite_code"])

    hidden = client.get(f"/api/booths/{booth_id}/results", headers=voter_headers)
    assert hidden.status_code == 403
    assert hidden.get_json()["code"] == "RESULTS_NOT_VISIBLE"

    outsider = client.get(f"/api/booths/{booth_id}/results", headers=auth_headers(make_user()))
    assert outsider.status_code == 403
    assert outsider.get_json()["error"] == "You must be a member to view results"

    assert client.get(f"/api/booths/{booth_id}/results", headers=owner_headers).status_code == 200


def test_reset_code_invalidates_old_code(client, owner_headers, voter_headers):
    created = create_booth(client, owner_headers)
    old_code = created["invite_code"]

    resp = client.post(f"/api/booths/{created['booth']['id']}/reset-code", headers=owner_headers)
    new_code = resp.get_json()["invite_code"]

    assert new_code != old_code
    assert join(client, voter_headers, old_code).status_code == 404
    assert join(client, voter_headers, new_code).status_code == 200


def test_remove_member_over_http(client, owner_headers, voter, voter_headers):
    created = create_booth(client, owner_headers)
    booth_id = created["booth"]["id"]
    join(client, voter_headers, created["invite_code"])
    vote(client, voter_headers, booth_id, 0)

    resp = client.delete(f"/api/booths/{booth_id}/members/{voter.id}", headers=owner_headers)
    assert resp.status_code == 200

    results = client.get(f"/api/booths/{booth_id}/results", headers=owner_headers).get_json()
    assert results["total_votes"] == 0
    assert results["statistics"]["total_members"] == 0


def test_list_booths(client, owner_headers, voter_headers):
    created = create_booth(client, owner_headers)
    join(client, voter_headers, created["invite_code"])

    mine = client.get("/api/booths/?type=created", headers=owner_headers).get_json()
    assert mine["total"] == 1
    assert mine["booths"][0]["invite_code"] == created["invite_code"]

    joined = client.get("/api/booths/?type=joined", headers=voter_headers).get_json()
    assert joined["total"] == 1
    assert joined["booths"][0]["is_creator"] is False
    assert "invite_code" not in joined["booths"][0]


def test_preview_invite_over_http(client, owner_headers, voter_headers):
    created = create_booth(client, owner_headers)
    resp = client.get(f"/api/booths/join/{created['invite_code']}", headers=voter_headers)
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["is_member"] is False
    assert data["booth"]["id"] == created["booth"]["id"]
