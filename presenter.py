"""
View logic for the showcase page.

Everything here works on an already-fetched summary
({profile, languageStats, projects}) and never talks to GitHub.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

DEFAULT_SORT = "stars"

SORT_OPTIONS = (
    ("stars", "Stars"),
    ("recent", "Recent Activity"),
    ("name", "Name"),
)

SANDBOX_LANGUAGES = frozenset({"JavaScript", "TypeScript", "React", "Vue", "Angular", "HTML"})
SANDBOX_TOPICS = frozenset({"react", "javascript", "typescript", "vue", "frontend"})

MAX_CARD_TAGS = 3

SANDBOX_EMBED_URL = (
    "https://codesandbox.io/embed/github/{login}/{name}"
    "?autoresize=1&fontsize=14&hidenavigation=1&theme=dark"
)
PREVIEW_IMAGE_URL = "https://opengraph.githubassets.com/1/{login}/{name}"


# -----------------------------
# Sorting / filtering
# -----------------------------
def _name_key(project: Dict[str, Any]) -> Tuple[str, str]:
    # Letters compare case-insensitively first; on a tie lowercase comes first
    name = project.get("name") or ""
    return name.casefold(), name.swapcase()


def sort_projects(projects: Iterable[Dict[str, Any]], sort_by: str = DEFAULT_SORT) -> List[Dict[str, Any]]:
    """
    Return a sorted copy of ``projects``. Unknown keys keep the incoming order.
    """
    items = list(projects)
    if sort_by == "stars":
        items.sort(key=lambda p: int(p.get("stars") or 0), reverse=True)
    elif sort_by == "recent":
        items.sort(key=lambda p: int(p.get("recentCommits") or 0), reverse=True)
    elif sort_by == "name":
        items.sort(key=_name_key)
    return items


def available_languages(projects: Iterable[Dict[str, Any]]) -> List[str]:
    return list(dict.fromkeys(p["language"] for p in projects if p.get("language")))


def filter_projects(projects: Iterable[Dict[str, Any]], language: Optional[str] = None) -> List[Dict[str, Any]]:
    if not language:
        return list(projects)
    return [p for p in projects if p.get("language") == language]


# -----------------------------
# Sandbox preview
# -----------------------------
def is_sandbox_compatible(project: Dict[str, Any]) -> bool:
    if project.get("language") in SANDBOX_LANGUAGES:
        return True
    return any(str(t).lower() in SANDBOX_TOPICS for t in (project.get("topics") or []))


def sandbox_url(login: str, name: str) -> str:
    return SANDBOX_EMBED_URL.format(login=login, name=name)


def preview_image_url(login: str, name: str) -> str:
    return PREVIEW_IMAGE_URL.format(login=login, name=name)


@dataclass
class PreviewState:
    """
    Which cards show the live sandbox, and the one card (if any) expanded
    to fill the viewport.
    """

    live: Set[str] = field(default_factory=set)
    expanded: Optional[str] = None

    @classmethod
    def from_form(cls, live: Iterable[str], expanded: Optional[str]) -> PreviewState:
        state = cls(live={n for n in live if n})
        if expanded and expanded in state.live:
            state.expanded = expanded
        return state

    def toggle_live(self, name: str) -> None:
        if name in self.live:
            self.live.discard(name)
            if self.expanded == name:
                self.expanded = None
        else:
            self.live.add(name)

    def toggle_expanded(self, name: str) -> None:
        if self.expanded == name:
            self.expanded = None
        elif name in self.live:
            self.expanded = name

    def restrict_to(self, names: Iterable[str]) -> None:
        """Forget cards that are not eligible for a live preview."""
        allowed = set(names)
        self.live &= allowed
        if self.expanded not in self.live:
            self.expanded = None


# -----------------------------
# View model
# -----------------------------
def build_card(project: Dict[str, Any], login: str, state: PreviewState) -> Dict[str, Any]:
    name = project.get("name") or ""
    eligible = is_sandbox_compatible(project)
    live = eligible and name in state.live
    return {
        **project,
        "sandbox_compatible": eligible,
        "live": live,
        "expanded": live and state.expanded == name,
        "sandbox_url": sandbox_url(login, name),
        "preview_image": preview_image_url(login, name),
        "tags": list(project.get("topics") or [])[:MAX_CARD_TAGS],
    }


def build_view(
    result: Dict[str, Any],
    sort_by: str = DEFAULT_SORT,
    language: Optional[str] = None,
    state: Optional[PreviewState] = None,
) -> Dict[str, Any]:
    state = state or PreviewState()
    profile = result.get("profile") or {}
    login = profile.get("login") or ""
    projects = list(result.get("projects") or [])

    state.restrict_to(p.get("name") for p in projects if is_sandbox_compatible(p))

    languages = available_languages(projects)
    shown = sort_projects(filter_projects(projects, language), sort_by)

    return {
        "profile": profile,
        "language_stats": result.get("languageStats") or {},
        "languages": languages,
        "language": language or "",
        "sort_by": sort_by,
        "sort_options": SORT_OPTIONS,
        "cards": [build_card(p, login, state) for p in shown],
        "live": sorted(state.live),
        "expanded": state.expanded,
    }
