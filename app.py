"""
GitHub Project Showcase (Flask)

What it does:
- Accepts a GitHub username
- Fetches the public profile and repository list via the GitHub REST API
- Drops forks, counts primary languages, ranks repositories by stars
- Enriches the top 3 with weekly commit activity (fetched concurrently)
- Serves the result as JSON and as a recruiter-facing showcase page

Setup:
  pip install -e .

Run:
  export GITHUB_TOKEN="github_pat_..."   # optional, raises rate limits
  python app.py
  open http://localhost:5000

Endpoints:
  GET  /                       -> showcase page (username form)
  POST /showcase               -> showcase page for a username
  GET  /api/fetch?username=    -> returns JSON summary
  POST /api/fetch              -> accepts form-data or JSON { "username": "..." }
  GET  /healthz                -> liveness + token status

GitHub computes repository statistics lazily: the first request for
/stats/commit_activity may answer 202 with no data. That repository is then
reported with an empty weekly series instead of failing the request.
"""

from __future__ import annotations

import logging
import os
import re
import secrets
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional

import requests
from flask import Flask, jsonify, render_template, request
from itsdangerous import BadSignature, URLSafeSerializer
from jinja2 import TemplateNotFound
from loguru import logger
from markupsafe import escape

import presenter

# -----------------------------
# Flask app
# -----------------------------
app = Flask(__name__)

# -----------------------------
# Config
# -----------------------------
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "").strip()
GITHUB_API_BASE = os.getenv("GITHUB_API_BASE", "https://api.github.com").rstrip("/")
API_VERSION = os.getenv("GITHUB_API_VERSION", "2022-11-28")
REQUEST_TIMEOUT_SECONDS = int(os.getenv("REQUEST_TIMEOUT_SECONDS", "20"))

# One page only; accounts with more repositories are partially covered.
REPOS_PER_PAGE = int(os.getenv("REPOS_PER_PAGE", "100"))
TOP_PROJECTS = int(os.getenv("TOP_PROJECTS", "3"))
RECENT_WEEKS = int(os.getenv("RECENT_WEEKS", "4"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

GENERIC_FETCH_ERROR = "Failed to fetch GitHub data."

# Signs the summary the showcase page carries between requests
SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
app.secret_key = SECRET_KEY

# Username validation (GitHub allows alnum and hyphen; max length 39)
USERNAME_RE = re.compile(r"^[A-Za-z0-9-]{1,39}$")


# -----------------------------
# Logging
# -----------------------------
class _InterceptHandler(logging.Handler):
    """Route stdlib logging (werkzeug, urllib3) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = LOG_LEVEL) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
    )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in ("urllib3", "werkzeug"):
        logging.getLogger(name).setLevel(logging.WARNING)


# -----------------------------
# HTTP helpers
# -----------------------------
class GitHubAPIError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class UserNotFoundError(GitHubAPIError):
    pass


class CommitStatsPending(GitHubAPIError):
    """GitHub is still computing the statistics (HTTP 202)."""


def _headers() -> Dict[str, str]:
    h = {
        "Accept": "application/vnd.github+json",
        "User-Agent": "github-project-showcase",
        "X-GitHub-Api-Version": API_VERSION,
    }
    if GITHUB_TOKEN:
        h["Authorization"] = f"Bearer {GITHUB_TOKEN}"
    return h


def _get(path: str, *, params: Optional[dict] = None) -> requests.Response:
    """
    Single GET against the GitHub API. No retries: every call is made once.
    """
    url = f"{GITHUB_API_BASE}{path}"
    logger.debug("GET {} params={}", url, params)
    resp = requests.get(url, headers=_headers(), params=params, timeout=REQUEST_TIMEOUT_SECONDS)
    if resp.status_code >= 400:
        raise GitHubAPIError(f"GitHub REST error {resp.status_code}: {resp.text[:600]}", resp.status_code)
    return resp


# -----------------------------
# Fetchers
# -----------------------------
def fetch_profile(username: str) -> Dict[str, Any]:
    try:
        resp = _get(f"/users/{username}")
    except GitHubAPIError as e:
        if e.status == 404:
            raise UserNotFoundError(f"GitHub user '{username}' not found.", 404) from e
        raise
    user = resp.json()
    if not isinstance(user, dict):
        raise GitHubAPIError(f"Unexpected profile payload for '{username}'.", resp.status_code)
    return user


def fetch_repositories(username: str) -> List[Dict[str, Any]]:
    resp = _get(
        f"/users/{username}/repos",
        params={"per_page": REPOS_PER_PAGE, "sort": "updated"},
    )
    repos = resp.json()
    if not isinstance(repos, list) or not all(isinstance(r, dict) for r in repos):
        raise GitHubAPIError(f"Unexpected repository listing for '{username}'.", resp.status_code)
    return repos


def fetch_commit_activity(owner: str, repo: str) -> List[Dict[str, int]]:
    """
    Weekly commit totals for the last year as [{"week": ts, "total": n}, ...].

    Raises CommitStatsPending while GitHub is still generating the data.
    """
    resp = _get(f"/repos/{owner}/{repo}/stats/commit_activity")
    if resp.status_code == 202:
        raise CommitStatsPending(f"Commit activity for {owner}/{repo} is not computed yet.", 202)
    if resp.status_code == 204 or not resp.content:
        return []
    weeks = resp.json()
    if not isinstance(weeks, list):
        return []
    return [{"week": w.get("week"), "total": int(w.get("total") or 0)} for w in weeks]


# -----------------------------
# Aggregation
# -----------------------------
def build_profile(raw_user: Dict[str, Any]) -> Dict[str, Any]:
    login = raw_user.get("login")
    return {
        "login": login,
        "name": raw_user.get("name") or login,
        "avatar_url": raw_user.get("avatar_url"),
        "bio": raw_user.get("bio"),
        "public_repos": raw_user.get("public_repos", 0),
        "followers": raw_user.get("followers", 0),
        "following": raw_user.get("following", 0),
        "created_at": raw_user.get("created_at"),
        "html_url": raw_user.get("html_url") or f"https://github.com/{login}",
    }


def own_repositories(repos: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [r for r in repos if not r.get("fork")]


def compute_language_stats(repos: List[Dict[str, Any]]) -> Dict[str, int]:
    stats: Dict[str, int] = {}
    for r in repos:
        lang = r.get("language")
        if lang:
            stats[lang] = stats.get(lang, 0) + 1
    return stats


def select_top_repositories(repos: List[Dict[str, Any]], limit: int = TOP_PROJECTS) -> List[Dict[str, Any]]:
    # sorted() is stable with reverse=True, so ties keep the upstream order
    ranked = sorted(repos, key=lambda r: int(r.get("stargazers_count") or 0), reverse=True)
    return ranked[:max(0, limit)]


def recent_commits(weeks: List[Dict[str, Any]], window: int = RECENT_WEEKS) -> int:
    if window <= 0:
        return 0
    return sum(int(w.get("total") or 0) for w in weeks[-window:])


def build_project(raw_repo: Dict[str, Any], weeks: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "name": raw_repo.get("name"),
        "html_url": raw_repo.get("html_url"),
        "description": raw_repo.get("description"),
        "stars": int(raw_repo.get("stargazers_count") or 0),
        "forks": int(raw_repo.get("forks_count") or 0),
        "language": raw_repo.get("language"),
        "topics": list(raw_repo.get("topics") or []),
        "last_updated": raw_repo.get("updated_at"),
        "recentCommits": recent_commits(weeks),
        "commitWeeks": weeks,
    }


def enrich_projects(owner: str, repos: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Fetch commit activity for each repository concurrently.

    A branch that fails for any reason contributes an empty series; it never
    affects its siblings. Output order follows the input order.
    """
    if not repos:
        return []

    weeks_by_index: Dict[int, List[Dict[str, Any]]] = {}
    with ThreadPoolExecutor(max_workers=len(repos)) as pool:
        futures = {
            pool.submit(fetch_commit_activity, (r.get("owner") or {}).get("login") or owner, r.get("name")): i
            for i, r in enumerate(repos)
        }
        for future in as_completed(futures):
            i = futures[future]
            name = repos[i].get("name")
            try:
                weeks_by_index[i] = future.result()
            except CommitStatsPending:
                logger.info("Commit activity for {} not ready yet, reporting none", name)
                weeks_by_index[i] = []
            except Exception:
                logger.opt(exception=True).warning("Commit activity for {} unavailable", name)
                weeks_by_index[i] = []

    return [build_project(r, weeks_by_index.get(i, [])) for i, r in enumerate(repos)]


def aggregate(username: str) -> Dict[str, Any]:
    raw_user = fetch_profile(username)
    profile = build_profile(raw_user)

    repos = own_repositories(fetch_repositories(username))
    language_stats = compute_language_stats(repos)
    top = select_top_repositories(repos)
    logger.info(
        "{}: {} own repositories, {} languages, enriching {}",
        username, len(repos), len(language_stats), [r.get("name") for r in top],
    )

    projects = enrich_projects(profile["login"] or username, top)
    return {"profile": profile, "languageStats": language_stats, "projects": projects}


# -----------------------------
# Flask routes
# -----------------------------
_FALLBACK_HOME = """
<!doctype html>
<html>
<head><meta charset="utf-8"><title>GitHub Project Showcase</title></head>
<body style="font-family: system-ui, -apple-system, Segoe UI, Roboto, sans-serif; padding: 24px;">
  <h2>GitHub Project Showcase API is running</h2>
  <p>Try: <code>/api/fetch?username=octocat</code></p>
  <p>Add a template at <code>templates/index.html</code> to build the UI.</p>
  {error}
</body>
</html>
"""


def _render_page(view: Optional[Dict[str, Any]] = None, error: Optional[str] = None, username: str = "", status: int = 200):
    try:
        return render_template("index.html", view=view, error=error, username=username), status
    except TemplateNotFound:
        body = _FALLBACK_HOME.replace("{error}", f"<p style=\"color: #c62828;\">{escape(error)}</p>" if error else "")
        return body, status, {"Content-Type": "text/html; charset=utf-8"}


def _username_error(username: Any) -> Optional[str]:
    if not isinstance(username, str) or not username.strip():
        return "Missing 'username'."
    if not USERNAME_RE.match(username.strip()):
        return "Invalid GitHub username format."
    return None


def _get_username_from_request() -> Any:
    if request.method == "GET":
        return request.args.get("username") or ""
    if request.is_json:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            return ""
        return payload.get("username")
    return request.form.get("username") or ""


def _fetch_for_response(username: str):
    """Run the aggregation, mapping failures to (error message, status)."""
    try:
        return aggregate(username), None, 200
    except UserNotFoundError as e:
        logger.info("Lookup failed: {}", e)
        return None, str(e), 404
    except (GitHubAPIError, requests.RequestException, ValueError):
        logger.exception("Failed to fetch GitHub data for {}", username)
        return None, GENERIC_FETCH_ERROR, 500
    except Exception:
        logger.exception("Unexpected error while aggregating {}", username)
        return None, GENERIC_FETCH_ERROR, 500


@app.route("/", methods=["GET"])
def home():
    return _render_page()


@app.route("/api/fetch", methods=["GET", "POST"])
def api_fetch():
    username = _get_username_from_request()
    error = _username_error(username)
    if error:
        return jsonify({"error": error}), 400

    result, error, status = _fetch_for_response(username.strip())
    if error:
        return jsonify({"error": error}), status
    return jsonify(result)


def _payload_serializer() -> URLSafeSerializer:
    return URLSafeSerializer(app.secret_key, salt="showcase-payload")


def dump_payload(result: Dict[str, Any]) -> str:
    return _payload_serializer().dumps(result)


def _is_summary(data: Any) -> bool:
    if not isinstance(data, dict) or not isinstance(data.get("profile"), dict):
        return False
    if not isinstance(data.get("languageStats", {}), dict):
        return False
    projects = data.get("projects")
    if not isinstance(projects, list):
        return False
    for p in projects:
        if not isinstance(p, dict) or not isinstance(p.get("name"), str):
            return False
        if not all(isinstance(p.get(k, 0), int) for k in ("stars", "forks", "recentCommits")):
            return False
        if not isinstance(p.get("topics") or [], list):
            return False
    return True


def _load_payload(raw: Optional[str], username: str) -> Optional[Dict[str, Any]]:
    """The summary the page carried back, if it is ours and belongs to ``username``."""
    if not raw:
        return None
    try:
        data = _payload_serializer().loads(raw)
    except BadSignature:
        logger.warning("Discarding showcase payload with a bad signature")
        return None
    if not _is_summary(data):
        logger.warning("Discarding malformed showcase payload")
        return None
    login = data["profile"].get("login")
    if not isinstance(login, str) or login.lower() != username.lower():
        return None
    return data


@app.route("/showcase", methods=["POST"])
def showcase():
    username = request.form.get("username") or ""
    error = _username_error(username)
    if error:
        return _render_page(error=error, username=username, status=400)
    username = username.strip()

    result = _load_payload(request.form.get("payload"), username)
    if result is None:
        result, error, status = _fetch_for_response(username)
        if error:
            return _render_page(error=error, username=username, status=status)
        state = presenter.PreviewState()
    else:
        state = presenter.PreviewState.from_form(
            request.form.getlist("live"), request.form.get("expanded")
        )
        if request.form.get("toggle_live"):
            state.toggle_live(request.form["toggle_live"])
        if request.form.get("toggle_expanded"):
            state.toggle_expanded(request.form["toggle_expanded"])

    view = presenter.build_view(
        result,
        sort_by=request.form.get("sort") or presenter.DEFAULT_SORT,
        language=request.form.get("language") or None,
        state=state,
    )
    view["payload"] = dump_payload(result)
    return _render_page(view=view, username=username)


@app.route("/healthz", methods=["GET"])
def healthz():
    return jsonify({"ok": True, "token_configured": bool(GITHUB_TOKEN)})


if __name__ == "__main__":
    setup_logging()
    port = int(os.getenv("PORT", "5000"))
    app.run(host="0.0.0.0", port=port, debug=True)
