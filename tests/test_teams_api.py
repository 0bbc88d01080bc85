import pytest

from models import Member, Payment, Team

from conftest import team_payload


@pytest.mark.parametrize("size", [1, 2, 3])
def test_first_member_is_leader_and_sets_institution(client, size):
    payload = team_payload("Alpha", "HACKATHON", size)
    response = client.post("/api/teams/register", json=payload)
    assert response.status_code == 201
    team = response.json()["team"]

    assert team["institution"] == payload["members"][0]["universityName"]
    leaders = [m for m in team["members"] if m["isTeamLeader"]]
    assert len(leaders) == 1
    assert leaders[0]["email"] == payload["members"][0]["email"]
    assert len(team["members"]) == size


@pytest.mark.parametrize("size", [0, 4])
def test_member_count_out_of_range_rejected_before_persistence(client, db, size):
    response = client.post("/api/teams/register", json=team_payload("Alpha", "IUPC", size))
    assert response.status_code == 400
    assert response.json()["status"] == "error"
    assert db.query(Team).count() == 0
    assert db.query(Member).count() == 0


def test_invalid_member_fields_rejected(client):
    payload = team_payload("Alpha", "IUPC", 1)
    payload["members"][0]["email"] = "not-an-email"
    payload["members"][0]["phone"] = "123"
    response = client.post("/api/teams/register", json=payload)
    assert response.status_code == 400
    paths = {error["path"] for error in response.json()["errors"]}
    assert "members.0.email" in paths
    assert "members.0.phone" in paths


def test_unknown_segment_rejected(client):
    response = client.post("/api/teams/register", json=team_payload("Alpha", "ROBOTICS", 1))
    assert response.status_code == 400


def test_registration_sends_checkout_link(client, mailer):
    team = client.post("/api/teams/register", json=team_payload("Alpha", "HACKATHON", 2)).json()["team"]
    mails = mailer.sent_to("alpha0@example.com")
    assert len(mails) == 1
    assert mails[0]["to"] == ["alpha0@example.com", "alpha1@example.com"]
    assert f"http://localhost:3000/checkout/{team['uniqueId']}" in mails[0]["html"]


def test_registration_survives_email_failure(client, mailer, db):
    mailer.fail_all = True
    response = client.post("/api/teams/register", json=team_payload("Alpha", "HACKATHON", 2))
    assert response.status_code == 201
    assert db.query(Team).count() == 1


def test_public_lookup_by_unique_id(client, register_team):
    team = register_team("Alpha")
    response = client.get(f"/api/teams/by-unique-id/{team['uniqueId']}")
    assert response.status_code == 200
    assert response.json()["teamName"] == "Alpha"
    assert client.get("/api/teams/by-unique-id/missing").status_code == 404


def test_list_requires_authentication(client):
    assert client.get("/api/teams").status_code == 401


def test_scoped_admin_only_sees_own_segments(client, scoped_headers, register_team):
    register_team("Alpha", "HACKATHON")
    register_team("Beta", "IUPC")
    register_team("Gamma", "DL_ENIGMA_2_0")
    headers = scoped_headers("iupc@sust.edu", ["IUPC"])

    body = client.get("/api/teams", headers=headers).json()
    assert [team["segment"] for team in body["teams"]] == ["IUPC"]
    assert body["pagination"]["total"] == 1

    other = client.get("/api/teams", params={"segment": "HACKATHON"}, headers=headers).json()
    assert other["teams"] == []
    assert other["pagination"]["total"] == 0


def test_list_filters_search_and_pagination(client, super_headers, register_team):
    for index in range(5):
        register_team(f"Team {index}", "HACKATHON", 1)
    register_team("Rocket", "IUPC", 1)

    page = client.get("/api/teams", params={"limit": 2, "page": 2}, headers=super_headers).json()
    assert page["pagination"] == {"total": 6, "page": 2, "limit": 2, "totalPages": 3}
    assert [team["teamName"] for team in page["teams"]] == ["Team 3", "Team 2"]

    found = client.get("/api/teams", params={"search": "rOcK"}, headers=super_headers).json()
    assert [team["teamName"] for team in found["teams"]] == ["Rocket"]

    by_segment = client.get("/api/teams", params={"segment": "IUPC"}, headers=super_headers).json()
    assert by_segment["pagination"]["total"] == 1


def test_search_treats_wildcards_literally(client, super_headers):
    for index, name in enumerate(["A_B", "AxB", "100% Pure", "1000 Club"]):
        payload = team_payload(name, "HACKATHON", 1)
        payload["members"][0]["email"] = f"wild{index}@example.com"
        assert client.post("/api/teams/register", json=payload).status_code == 201

    def names(term):
        body = client.get("/api/teams", params={"search": term}, headers=super_headers).json()
        return sorted(team["teamName"] for team in body["teams"])

    assert names("_") == ["A_B"]
    assert names("100%") == ["100% Pure"]


def test_list_rejects_bad_paging(client, super_headers):
    assert client.get("/api/teams", params={"limit": 0}, headers=super_headers).status_code == 400
    assert client.get("/api/teams", params={"page": 0}, headers=super_headers).status_code == 400


def test_selected_filter(client, super_headers, register_team):
    alpha = register_team("Alpha")
    register_team("Beta")
    client.patch(f"/api/teams/{alpha['id']}/selection", json={"isSelected": True}, headers=super_headers)

    body = client.get("/api/teams", params={"isSelected": "true"}, headers=super_headers).json()
    assert [team["teamName"] for team in body["teams"]] == ["Alpha"]


def test_get_team_scope_and_missing(client, scoped_headers, register_team):
    team = register_team("Alpha", "HACKATHON")
    hackathon = scoped_headers("hack@sust.edu", ["HACKATHON"])
    iupc = scoped_headers("iupc@sust.edu", ["IUPC"])

    assert client.get(f"/api/teams/{team['id']}", headers=hackathon).status_code == 200
    denied = client.get(f"/api/teams/{team['id']}", headers=iupc)
    assert denied.status_code == 403
    assert denied.json()["message"] == "Access denied"
    assert client.get("/api/teams/9999", headers=hackathon).status_code == 404


def test_super_admin_review_actions(client, super_headers, register_team):
    team = register_team("Alpha")
    base = f"/api/teams/{team['id']}"

    selected = client.patch(f"{base}/selection", json={"isSelected": True}, headers=super_headers)
    assert selected.json()["message"] == "Team selected successfully"
    assert selected.json()["team"]["isSelected"] is True

    disqualified = client.patch(
        f"{base}/disqualify",
        json={"isDisqualified": True, "reason": "  Plagiarism  "},
        headers=super_headers,
    )
    assert disqualified.json()["team"]["isDisqualified"] is True
    assert disqualified.json()["team"]["disqualificationReason"] == "Plagiarism"

    reinstated = client.patch(f"{base}/disqualify", json={"isDisqualified": False}, headers=super_headers)
    assert reinstated.json()["message"] == "Team reinstated successfully"
    assert reinstated.json()["team"]["disqualificationReason"] is None

    standing = client.patch(f"{base}/standing", json={"standing": "WINNER"}, headers=super_headers)
    assert standing.json()["team"]["standing"] == "WINNER"

    again = client.patch(f"{base}/standing", json={"standing": "WINNER"}, headers=super_headers)
    assert again.status_code == 200


def test_review_actions_require_super_admin(client, scoped_headers, register_team):
    team = register_team("Alpha", "HACKATHON")
    headers = scoped_headers("hack@sust.edu", ["HACKATHON"])
    response = client.patch(f"/api/teams/{team['id']}/selection", json={"isSelected": True}, headers=headers)
    assert response.status_code == 403
    assert client.delete(f"/api/teams/{team['id']}", headers=headers).status_code == 403


def test_review_actions_on_missing_team(client, super_headers):
    assert client.patch("/api/teams/404/standing", json={"standing": "WINNER"}, headers=super_headers).status_code == 404
    assert client.delete("/api/teams/404", headers=super_headers).status_code == 404


def test_delete_team_cascades_members_and_payments(client, super_headers, register_team, db):
    team = register_team("Alpha", members=3)
    assert client.post("/api/payment/initiate", json={"uniqueId": team["uniqueId"]}).status_code == 200
    assert db.query(Payment).filter(Payment.team_id == team["id"]).count() == 1

    assert client.delete(f"/api/teams/{team['id']}", headers=super_headers).status_code == 200
    assert db.query(Member).filter(Member.team_id == team["id"]).count() == 0
    assert db.query(Payment).filter(Payment.team_id == team["id"]).count() == 0
