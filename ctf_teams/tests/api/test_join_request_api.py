from http import HTTPStatus

import pytest
from fastapi.testclient import TestClient

from ctf_teams.core.settings import settings

API = settings.API_V1_STR


@pytest.fixture
def team(make_team, players):
    return make_team(captain=players["leader"], members=[players["alice"], players["bob"]])


def _submit(client, auth, team, user, message="hi"):
    return client.post(f"{API}/teams/{team.id}/requests", headers=auth(user), json={"message": message})


def test_submit_and_approve(client: TestClient, auth, team, players, notifier):
    submitted = _submit(client, auth, team, players["carol"])
    assert submitted.status_code == HTTPStatus.CREATED, submitted.text
    request_id = submitted.json()["id"]

    approved = client.put(f"{API}/requests/{request_id}", headers=auth(players["leader"]), json={"status": "approved"})

    assert approved.status_code == HTTPStatus.OK
    assert approved.json()["status"] == "approved"
    assert notifier.kinds() == ["join_request.submitted", "join_request.approved"]


def test_duplicate_submit(client: TestClient, auth, team, players):
    _submit(client, auth, team, players["carol"])
    response = _submit(client, auth, team, players["carol"])
    assert response.status_code == HTTPStatus.CONFLICT
    assert response.json()["error"]["code"] == "duplicate_pending_request"


def test_last_seat_conflict(client: TestClient, auth, team, players):
    first = _submit(client, auth, team, players["carol"]).json()["id"]
    second = _submit(client, auth, team, players["dave"]).json()["id"]
    headers = auth(players["leader"])

    assert client.put(f"{API}/requests/{first}", headers=headers, json={"status": "approved"}).status_code == 200
    response = client.put(f"{API}/requests/{second}", headers=headers, json={"status": "approved"})

    assert response.status_code == HTTPStatus.CONFLICT
    assert response.json()["error"]["code"] == "team_full"
    stored = client.get(f"{API}/requests/{second}", headers=headers).json()
    assert stored["status"] == "rejected"
    assert stored["responded_by"] is None
    assert stored["response_reason"] == "team_full"


def test_answered_request_conflicts(client: TestClient, auth, team, players):
    request_id = _submit(client, auth, team, players["carol"]).json()["id"]
    headers = auth(players["leader"])
    client.put(f"{API}/requests/{request_id}", headers=headers, json={"status": "rejected"})

    response = client.put(f"{API}/requests/{request_id}", headers=headers, json={"status": "approved"})
    assert response.status_code == HTTPStatus.CONFLICT
    assert response.json()["error"]["code"] == "invalid_state_transition"


def test_bulk_action(client: TestClient, auth, team, players):
    r1 = _submit(client, auth, team, players["carol"]).json()["id"]
    r2 = _submit(client, auth, team, players["dave"]).json()["id"]
    headers = auth(players["leader"])
    client.put(f"{API}/requests/{r2}", headers=headers, json={"status": "approved"})

    response = client.post(f"{API}/requests/bulk-action", headers=headers, json={"action": "approve", "request_ids": [r1, r2]})

    assert response.status_code == HTTPStatus.OK
    data = response.json()
    assert data["successful"] == []
    assert data["failed_count"] == 2
    assert {f["code"] for f in data["failed"]} == {"team_full", "invalid_state_transition"}


def test_bulk_action_partial_success(client: TestClient, auth, team, players):
    r1 = _submit(client, auth, team, players["carol"]).json()["id"]
    r2 = _submit(client, auth, team, players["dave"]).json()["id"]
    headers = auth(players["leader"])
    client.put(f"{API}/requests/{r2}", headers=headers, json={"status": "rejected"})

    data = client.post(
        f"{API}/requests/bulk-action", headers=headers, json={"action": "approve", "request_ids": [r1, r2]},
    ).json()

    assert data["successful"] == [r1]
    assert [f["request_id"] for f in data["failed"]] == [r2]
    assert data["success_count"] == 1


def test_withdraw_and_listings(client: TestClient, auth, team, players):
    request_id = _submit(client, auth, team, players["carol"]).json()["id"]

    withdrawn = client.delete(f"{API}/requests/{request_id}", headers=auth(players["carol"]))
    assert withdrawn.json()["response_reason"] == "withdrawn"

    _submit(client, auth, team, players["dave"])
    mine = client.get(f"{API}/requests/mine", headers=auth(players["carol"])).json()
    assert [r["id"] for r in mine] == [request_id]
    leader_view = client.get(f"{API}/requests/leader", headers=auth(players["leader"]), params={"status": "pending"})
    assert len(leader_view.json()) == 1

    stats = client.get(f"{API}/teams/{team.id}/request-stats", headers=auth(players["leader"])).json()
    assert stats["total"] == 2
    assert stats["pending"] == 1


def test_team_requests_require_leader(client: TestClient, auth, team, players, admin):
    _submit(client, auth, team, players["carol"])
    assert client.get(f"{API}/teams/{team.id}/requests", headers=auth(players["alice"])).status_code == 403
    assert len(client.get(f"{API}/teams/{team.id}/requests", headers=auth(admin)).json()) == 1


def test_admin_stats(client: TestClient, auth, team, players, admin):
    _submit(client, auth, team, players["carol"])
    assert client.get(f"{API}/requests/admin/stats", headers=auth(players["leader"])).status_code == 403
    stats = client.get(f"{API}/requests/admin/stats", headers=auth(admin)).json()
    assert stats["total"] == 1
    assert stats["recent"] == 1


def test_invite_only_team_refuses_requests(client: TestClient, auth, make_team, players):
    private = make_team(name="Private Keys", captain=players["leader"], is_invite_only=True)

    response = _submit(client, auth, private, players["carol"])

    assert response.status_code == HTTPStatus.FORBIDDEN
    assert response.json()["error"]["code"] == "forbidden"
    assert response.json()["error"]["details"]["team_id"] == private.id


def test_admin_lists_all_requests(client: TestClient, auth, team, players, admin, make_team):
    other = make_team(name="Side Channel", captain=players["erin"])
    r1 = _submit(client, auth, team, players["carol"]).json()["id"]
    r2 = _submit(client, auth, other, players["dave"]).json()["id"]
    client.put(f"{API}/requests/{r2}", headers=auth(players["erin"]), json={"status": "rejected"})

    assert client.get(f"{API}/requests", headers=auth(players["leader"])).status_code == HTTPStatus.FORBIDDEN

    everything = client.get(f"{API}/requests", headers=auth(admin)).json()
    assert {r["id"] for r in everything} == {r1, r2}
    pending = client.get(f"{API}/requests", headers=auth(admin), params={"status": "pending"}).json()
    assert [r["id"] for r in pending] == [r1]
    by_team = client.get(f"{API}/requests", headers=auth(admin), params={"team_id": other.id}).json()
    assert [r["id"] for r in by_team] == [r2]
