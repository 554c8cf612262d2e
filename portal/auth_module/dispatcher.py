"""Top-level navigation rules.

Runs before the route guard: authenticated users are bounced off the public
and auth pages, anonymous users see the welcome page at the root, and every
other path goes through ``guard.evaluate`` and then the page table.
"""

import enum
from dataclasses import dataclass, field

from starlette.routing import compile_path

from .guard import GuardState, SessionView, dashboard_for, evaluate, role_prefix


WELCOME_PATHS = frozenset({"/", "/welcome"})

AUTH_PAGES = {
    "/login": "auth.login",
    "/student/login": "auth.student_login",
    "/school/login": "auth.school_login",
    "/parent/login": "auth.parent_login",
    "/register": "auth.register",
    "/school/register": "auth.school_register",
    "/student/register": "auth.student_register",
    "/forgot-password": "auth.forgot_password",
    "/reset-password": "auth.reset_password",
}

MASTER_DATA = (
    "city", "state", "country", "institute", "branch", "school", "board", "class", "division",
    "academicyear", "emotion", "zone", "logmood", "category", "subcategory", "impact", "pleasantness",
)

PAGE_ROUTES: dict[str, tuple[str, str]] = {
    # path: (page key, title)
    "/dashboard": ("admin.dashboard", "Dashboard"),
    "/reports": ("admin.reports", "Reports"),
    "/graph": ("admin.graph", "Graph"),
    **{f"/master/{name}": (f"admin.master.{name}", f"Master Data: {name.title()}") for name in MASTER_DATA},
    "/school/dashboard": ("school.dashboard", "School Dashboard"),
    "/school/overview": ("school.overview", "School Overview"),
    "/school/students": ("school.students", "All Students"),
    "/school/students/{id}/mood-history": ("school.student_mood_history", "Mood History"),
    "/school/academics/classes": ("school.classes", "Classes"),
    "/school/academics/divisions": ("school.divisions", "Divisions"),
    "/school/academics/academic-year": ("school.academic_year", "Academic Year"),
    "/school/teachers": ("school.teachers", "Teachers"),
    "/school/calendar": ("school.calendar", "Calendar"),
    "/school/notifications": ("school.notifications", "Notifications"),
    "/school/documents": ("school.documents", "Documents"),
    "/student/dashboard": ("student.dashboard", "Student Dashboard"),
    "/student/profile": ("student.profile", "Profile"),
    "/student/log-mood": ("student.log_mood", "Log Mood"),
    "/student/mood-history": ("student.mood_history", "Mood History"),
    "/student/mood-overview": ("student.mood_overview", "Mood Overview"),
    "/student/calendar": ("student.calendar", "Calendar"),
    "/student/streaks-rewards": ("student.streaks_rewards", "Streaks & Rewards"),
    "/student/referrals": ("student.referrals", "Referrals"),
    "/student/community": ("student.community", "Community"),
    "/student/notifications": ("student.notifications", "Notifications"),
    "/student/predefined-list": ("student.predefined_list", "Predefined List"),
    "/parent/dashboard": ("parent.dashboard", "Parent Dashboard"),
    "/parent/children": ("parent.children", "My Children"),
    "/parent/children/{id}/mood-tracking": ("parent.child_mood_tracking", "Child Mood Tracking"),
    "/parent/children/{id}/profile": ("parent.child_profile", "Child Profile"),
    "/parent/notifications": ("parent.notifications", "Notifications"),
    "/parent/profile": ("parent.profile", "Profile"),
    "/parent/calendar": ("parent.calendar", "Calendar"),
    "/parent/reports": ("parent.reports", "Reports"),
}

_COMPILED_ROUTES = [
    (compile_path(path)[0], page, title) for path, (page, title) in PAGE_ROUTES.items()
]


class Outcome(str, enum.Enum):
    LOADING = "loading"
    REDIRECT = "redirect"
    WELCOME = "welcome"
    AUTH_PAGE = "auth_page"
    PAGE = "page"


@dataclass(frozen=True)
class Dispatch:
    outcome: Outcome
    location: str | None = None
    return_to: str | None = None
    page: str | None = None
    title: str | None = None
    params: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PageMatch:
    page: str
    title: str
    params: dict[str, str]


def match_page(path: str) -> PageMatch | None:
    for regex, page, title in _COMPILED_ROUTES:
        found = regex.match(path)
        if found:
            return PageMatch(page=page, title=title, params=found.groupdict())
    return None


def normalize_path(path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def redirect(location: str, return_to: str | None = None) -> Dispatch:
    return Dispatch(Outcome.REDIRECT, location=location, return_to=return_to)


def dispatch(session: SessionView, path: str) -> Dispatch:
    path = normalize_path(path)
    if session.loading:
        return Dispatch(Outcome.LOADING)

    if session.is_authenticated:
        if path in WELCOME_PATHS:
            return redirect(dashboard_for(session.user_type))
        if path in AUTH_PAGES:
            # The page's own section wins over the session's role.
            return redirect(dashboard_for(role_prefix(path) or session.user_type))
    else:
        if path in WELCOME_PATHS:
            return Dispatch(Outcome.WELCOME, page="welcome", title="Welcome")
        if path in AUTH_PAGES:
            return Dispatch(Outcome.AUTH_PAGE, page=AUTH_PAGES[path])

    decision = evaluate(session, path)
    if decision.state is GuardState.LOADING:
        return Dispatch(Outcome.LOADING)
    if decision.state is not GuardState.AUTHORIZED:
        return redirect(decision.location, decision.return_to)

    found = match_page(path)
    if found is None:
        return redirect(dashboard_for(session.user_type))
    return Dispatch(Outcome.PAGE, page=found.page, title=found.title, params=found.params)
