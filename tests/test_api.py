import app as showcase
from conftest import make_repo, make_weeks


def test_fetch_returns_summary(client, github):
    github.add_user("octocat", [make_repo("py-lib", stars=50, language="Python")],
                    activity={"py-lib": make_weeks(1, 1)})

    resp = client.post("/api/fetch", json={"username": "octocat"})

    assert resp.status_code == 200
    data = resp.get_json()
    assert set(data) == {"profile", "languageStats", "projects"}
    assert data["profile"]["login"] == "octocat"
    assert data["languageStats"] == {"Python": 1}
    assert data["projects"][0]["recentCommits"] == 2


def test_fetch_accepts_query_string(client, github):
    github.add_user("octocat", [])

    resp = client.get("/api/fetch?username=octocat")

    assert resp.status_code == 200
    assert resp.get_json()["projects"] == []


def test_missing_username_is_rejected_without_upstream_calls(client, github):
    for body in ({}, {"username": ""}, {"username": "   "}, {"username": 42}, ["octocat"]):
        resp = client.post("/api/fetch", json=body)
        assert resp.status_code == 400
        assert "error" in resp.get_json()
    assert github.calls == []


def test_malformed_username_is_rejected(client, github):
    resp = client.post("/api/fetch", json={"username": "not/a/user"})

    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Invalid GitHub username format."}
    assert github.calls == []


def test_unknown_user_is_not_found(client, github):
    resp = client.post("/api/fetch", json={"username": "ghost"})

    assert resp.status_code == 404
    assert "ghost" in resp.get_json()["error"]


def test_upstream_failure_is_a_generic_server_error(client, github):
    github.add_user("octocat", [])
    github.add("/users/octocat/repos", {"message": "Server Error"}, status=502)

    resp = client.post("/api/fetch", json={"username": "octocat"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": showcase.GENERIC_FETCH_ERROR}


def test_network_failure_is_a_generic_server_error(client, github, network_error):
    github.fail("/users/octocat", network_error)

    resp = client.post("/api/fetch", data={"username": "octocat"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": showcase.GENERIC_FETCH_ERROR}


def test_healthz(client):
    resp = client.get("/healthz")

    assert resp.status_code == 200
    assert resp.get_json()["ok"] is True


def test_unexpected_profile_shape_is_a_json_server_error(client, github):
    github.add("/users/octocat", ["not", "a", "user"])

    resp = client.post("/api/fetch", json={"username": "octocat"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": showcase.GENERIC_FETCH_ERROR}


def test_unexpected_repository_entries_are_a_json_server_error(client, github):
    github.add_user("octocat", [])
    github.add("/users/octocat/repos", ["not-a-repo"])

    resp = client.post("/api/fetch", json={"username": "octocat"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": showcase.GENERIC_FETCH_ERROR}


def test_unexpected_failure_inside_aggregation_is_a_json_server_error(client, monkeypatch):
    def broken(username):
        raise KeyError("login")

    monkeypatch.setattr(showcase, "aggregate", broken)

    resp = client.post("/api/fetch", json={"username": "octocat"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": showcase.GENERIC_FETCH_ERROR}
