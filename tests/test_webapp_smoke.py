"""Smoke tests for the HTTP API."""


def create_knockout(client, teams=("a", "b", "c", "d"), **config):
    response = client.post(
        "/brackets",
        json={
            "tournament_id": "T1",
            "category_id": 1,
            "format": "knockout",
            "team_ids": list(teams),
            "config": config,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def by_number(matches):
    return {m["match_number"]: m for m in matches}


def test_create_and_get_bracket(client):
    created = create_knockout(client, third_place_match=True)
    bracket_id = created["bracket"]["id"]
    assert created["bracket"]["status"] == "draft"
    assert created["bracket"]["config"]["third_place_match"] is True
    assert len(created["matches"]) == 4

    response = client.get(f"/brackets/{bracket_id}")
    assert response.status_code == 200
    assert response.json()["bracket"]["format"] == "knockout"


def test_unknown_bracket_is_404(client):
    response = client.get("/brackets/missing")
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


def test_insufficient_teams_is_400(client):
    response = client.post(
        "/brackets",
        json={"tournament_id": "T1", "category_id": 1, "format": "knockout", "team_ids": ["a"]},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InsufficientTeams"


def test_unsupported_format_is_400(client):
    response = client.post(
        "/brackets",
        json={"tournament_id": "T1", "category_id": 1, "format": "americano", "team_ids": ["a", "b"]},
    )
    assert response.status_code == 400


def test_record_score_flow(client):
    matches = by_number(create_knockout(client)["matches"])
    response = client.post(
        f"/matches/{matches[1]['id']}/score",
        json={"sets": [{"team1": 7, "team2": 6, "tiebreak": {"team1": 7, "team2": 2}}, {"team1": 6, "team2": 1}]},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["match"]["status"] == "completed"
    assert body["match"]["winner_id"] == "a"
    assert body["match"]["version"] == 1
    assert body["successors"][0]["team1_id"] == "a"


def test_invalid_score_is_422(client):
    matches = by_number(create_knockout(client)["matches"])
    response = client.post(f"/matches/{matches[1]['id']}/score", json={"sets": [{"team1": 6, "team2": 5}]})
    assert response.status_code == 422
    assert response.json()["error"] == "ValidationFailed"


def test_stale_version_is_409(client):
    matches = by_number(create_knockout(client)["matches"])
    match_id = matches[1]["id"]
    assert client.post(f"/matches/{match_id}/status", json={"status": "in_progress"}).status_code == 200
    response = client.post(
        f"/matches/{match_id}/score",
        json={"sets": [{"team1": 6, "team2": 0}, {"team1": 6, "team2": 0}], "expected_version": 0},
    )
    assert response.status_code == 409


def test_advance_and_reset(client):
    matches = by_number(create_knockout(client)["matches"])
    match_id = matches[2]["id"]
    response = client.post(f"/matches/{match_id}/advance", json={"winner_team": 2})
    assert response.status_code == 200
    assert response.json()["match"]["winner_id"] == "c"

    response = client.post(f"/matches/{match_id}/reset")
    assert response.status_code == 200
    assert response.json()["match"]["status"] == "scheduled"


def test_withdraw_and_standings(client):
    bracket_id = create_knockout(client)["bracket"]["id"]
    response = client.post(f"/brackets/{bracket_id}/withdraw", json={"team_id": "d"})
    assert response.status_code == 200
    assert len(response.json()["forfeited_match_ids"]) == 1

    response = client.get(f"/brackets/{bracket_id}/standings")
    assert response.status_code == 200
    assert {s["team_id"] for s in response.json()} == {"a", "b", "c", "d"}


def test_publish_twice_is_409(client):
    bracket_id = create_knockout(client)["bracket"]["id"]
    assert client.post(f"/brackets/{bracket_id}/publish").json()["status"] == "published"
    assert client.post(f"/brackets/{bracket_id}/publish").status_code == 409


def test_groups_knockout_flow(client):
    response = client.post(
        "/brackets",
        json={
            "tournament_id": "T1",
            "category_id": 2,
            "format": "groups_knockout",
            "team_ids": ["a1", "a2", "b1", "b2"],
            "config": {"group_count": 2, "teams_per_group": 2, "advancing_per_group": 1},
            "groups": [
                {"group_number": 1, "team_ids": ["a1", "a2"]},
                {"group_number": 2, "team_ids": ["b1", "b2"]},
            ],
        },
    )
    assert response.status_code == 201, response.text
    bracket_id = response.json()["bracket"]["id"]

    groups = client.get(f"/brackets/{bracket_id}/groups").json()
    assert groups["phase"] == "groups"
    assert [g["group_name"] for g in groups["groups"]] == ["Group A", "Group B"]

    assert client.post(f"/brackets/{bracket_id}/knockout").status_code == 409

    for group in groups["groups"]:
        for match in group["matches"]:
            sets = [{"team1": 6, "team2": 2}, {"team1": 6, "team2": 2}]
            assert client.post(f"/matches/{match['id']}/score", json={"sets": sets}).status_code == 200

    response = client.get(f"/brackets/{bracket_id}/standings", params={"group": 1})
    assert [s["team_id"] for s in response.json()] == ["a1", "a2"]

    response = client.post(f"/brackets/{bracket_id}/knockout")
    assert response.status_code == 201
    final = response.json()["matches"][0]
    assert {final["team1_id"], final["team2_id"]} == {"a1", "b1"}

    response = client.delete(f"/brackets/{bracket_id}/knockout")
    assert response.json() == {"deleted": 1}


def test_validate_score_endpoint(client):
    response = client.post("/scores/validate", json={"sets": [{"team1": 6, "team2": 4}, {"team1": 6, "team2": 4}]})
    assert response.json() == {"valid": True, "winner": 1, "sets_won": [2, 0], "reason": None}

    response = client.post(
        "/scores/validate",
        json={"sets": [{"team1": 8, "team2": 8}], "match_format": {"scoring": "express", "points_per_set": 8}},
    )
    body = response.json()
    assert body["valid"] is False
    assert body["reason"] == "Set 1: Both teams cannot have 8 points"


def test_non_numeric_match_format_is_400(client):
    response = client.post(
        "/scores/validate",
        json={"sets": [{"team1": 6, "team2": 4}], "match_format": {"games_per_set": "six"}},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidInput"

    response = client.post(
        "/scores/validate",
        json={"sets": [{"team1": 8, "team2": 4}], "match_format": {"scoring": "express", "points_per_set": "8"}},
    )
    assert response.status_code == 200
    assert response.json()["valid"] is True


def test_string_flag_in_bracket_config_is_400(client):
    response = client.post(
        "/brackets",
        json={
            "tournament_id": "T1",
            "category_id": 1,
            "format": "knockout",
            "team_ids": ["a", "b", "c", "d"],
            "config": {"third_place_match": "false"},
        },
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidInput"


def test_automatic_groups_and_swap(client):
    response = client.post(
        "/brackets",
        json={
            "tournament_id": "T1",
            "category_id": 3,
            "format": "groups_knockout",
            "team_ids": [f"t{i}" for i in range(1, 7)],
            "config": {"advancing_per_group": 1},
        },
    )
    assert response.status_code == 201, response.text
    bracket = response.json()["bracket"]
    assert (bracket["config"]["group_count"], bracket["config"]["teams_per_group"]) == (2, 3)

    response = client.post(f"/brackets/{bracket['id']}/groups/swap", json={"team1_id": "t1", "team2_id": "t2"})
    assert response.status_code == 200, response.text
    groups = response.json()["groups"]
    assert groups[0]["team_ids"] == ["t2", "t4", "t5"]
    assert groups[1]["team_ids"] == ["t1", "t3", "t6"]

    response = client.post(f"/brackets/{bracket['id']}/groups/swap", json={"team1_id": "t1", "team2_id": "t3"})
    assert response.status_code == 400
