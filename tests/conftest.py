from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import pytest
import requests

import app as showcase


class FakeResponse:
    def __init__(self, status_code: int, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body
        self.content = b"" if body is None else json.dumps(body).encode()
        self.text = self.content.decode()

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeGitHub:
    """URL-path routed stand-in for requests.get as used by app._get."""

    def __init__(self) -> None:
        self.routes: Dict[str, Tuple[int, Any]] = {}
        self.errors: Dict[str, Exception] = {}
        self.calls: List[Tuple[str, Optional[dict]]] = []

    def add(self, path: str, body: Any = None, status: int = 200) -> None:
        self.routes[path] = (status, body)

    def fail(self, path: str, exc: Exception) -> None:
        self.errors[path] = exc

    def add_user(
        self,
        login: str,
        repos: List[Dict[str, Any]],
        activity: Optional[Dict[str, Any]] = None,
        **profile: Any,
    ) -> None:
        user = {
            "login": login,
            "name": None,
            "avatar_url": f"https://avatars.example/{login}",
            "bio": None,
            "public_repos": len(repos),
            "followers": 3,
            "following": 1,
            "created_at": "2011-01-25T18:44:36Z",
            "html_url": f"https://github.com/{login}",
        }
        user.update(profile)
        self.add(f"/users/{login}", user)
        self.add(f"/users/{login}/repos", repos)
        for r in repos:
            weeks = (activity or {}).get(r["name"], [])
            self.add(f"/repos/{login}/{r['name']}/stats/commit_activity", weeks)

    def paths(self) -> List[str]:
        return [p for p, _ in self.calls]

    def __call__(self, url: str, headers=None, params=None, timeout=None) -> FakeResponse:
        path = urlparse(url).path
        self.calls.append((path, params))
        if path in self.errors:
            raise self.errors[path]
        if path not in self.routes:
            return FakeResponse(404, {"message": "Not Found"})
        status, body = self.routes[path]
        return FakeResponse(status, body)


def make_repo(name: str, stars: int = 0, language: Optional[str] = None, fork: bool = False, **extra: Any) -> Dict[str, Any]:
    repo = {
        "name": name,
        "html_url": f"https://github.com/octocat/{name}",
        "description": f"{name} description",
        "fork": fork,
        "stargazers_count": stars,
        "forks_count": 0,
        "language": language,
        "topics": [],
        "updated_at": "2024-05-01T10:00:00Z",
    }
    repo.update(extra)
    return repo


def make_weeks(*totals: int) -> List[Dict[str, Any]]:
    return [{"week": 1700000000 + i * 604800, "total": t, "days": [t, 0, 0, 0, 0, 0, 0]} for i, t in enumerate(totals)]


@pytest.fixture
def github(monkeypatch) -> FakeGitHub:
    fake = FakeGitHub()
    monkeypatch.setattr(showcase.requests, "get", fake)
    return fake


@pytest.fixture
def client():
    showcase.app.config["TESTING"] = True
    with showcase.app.test_client() as c:
        yield c


@pytest.fixture
def network_error() -> Exception:
    return requests.ConnectionError("connection reset")
