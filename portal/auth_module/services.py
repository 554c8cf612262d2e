import calendar
import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any
from urllib.parse import urlsplit

from .api_client import BackendClient, BackendError
from .config import settings
from .context import AuthContext
from .guard import ROLE_ROUTES, dashboard_for
from .models import UserType
from .schemas import LoginForm, SchoolRegisterForm, StudentRegisterForm


logger = logging.getLogger(__name__)


def safe_next(value: str | None) -> str | None:
    """Accept only local absolute paths as post-login targets."""
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return None
    parts = urlsplit(value)
    if parts.scheme or parts.netloc:
        return None
    return value


def login_user(
    auth: AuthContext,
    client: BackendClient,
    *,
    user_type: UserType,
    form: LoginForm,
    next_path: str | None = None,
) -> str:
    """Authenticate against the backend and return where to send the browser."""
    logger.info(f"Login attempt for {form.email} via {user_type.value} login")
    data = client.login(user_type, form.email, form.password)
    resolved = auth.login(data.user, data.token)
    logger.info(f"Login succeeded for {form.email}; session type is {resolved.value}")
    return safe_next(next_path) or dashboard_for(resolved)


def register_account(
    auth: AuthContext, client: BackendClient, *, form: SchoolRegisterForm | StudentRegisterForm
) -> str:
    user_type = UserType.SCHOOL if isinstance(form, SchoolRegisterForm) else UserType.STUDENT
    logger.info(f"Registration attempt for {form.email} as {user_type.value}")
    data = client.register(user_type, form.payload())
    auth.login(data.user, data.token)
    return dashboard_for(user_type)


def logout_user(auth: AuthContext) -> str:
    user_type = auth.user_type or UserType.ADMIN
    auth.logout()
    logger.info(f"Logout for {user_type.value} session")
    return ROLE_ROUTES[user_type].login_path


# --- Listings ---


def division_letter(name: str | None) -> str:
    """'Grade 10 - A' -> 'A'."""
    name = name or ""
    if " - " in name:
        name = name.split(" - ")[-1]
    return name.strip()


def active_label(value: Any) -> str:
    if isinstance(value, str):
        return value
    return "active" if value else "inactive"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def _nested_name(value: Any) -> str:
    if isinstance(value, dict):
        return _text(value.get("name"))
    return _text(value)


def _date_only(value: Any) -> str:
    return _text(value).split("T")[0]


Column = tuple[str, Callable[[dict], str]]


@dataclass(frozen=True)
class ResourceView:
    resource: str
    columns: tuple[Column, ...]
    params: dict[str, Any] = field(default_factory=dict)
    remote_search: bool = False
    search_fields: tuple[str, ...] = ()
    page_size: int | None = None
    # (label, path suffix) pairs linked from each row as {path}/{id}/{suffix}
    links: tuple[tuple[str, str], ...] = ()

    def row(self, record: dict) -> list[str]:
        return [render(record) for _, render in self.columns]

    @property
    def headers(self) -> list[str]:
        return [label for label, _ in self.columns]


RESOURCE_VIEWS = {
    "school.students": ResourceView(
        resource="students",
        params={"status": "active"},
        remote_search=True,
        links=(("Mood History", "mood-history"),),
        columns=(
            ("Name", lambda r: _text(r.get("name"))),
            ("Student ID", lambda r: _text(r.get("studentId"))),
            ("Class", lambda r: _nested_name(r.get("class"))),
            ("Division", lambda r: division_letter(_nested_name(r.get("division")))),
            ("Email", lambda r: _text(r.get("email"))),
            ("Phone", lambda r: _text(r.get("phone"))),
            ("Status", lambda r: active_label(r.get("status"))),
        ),
    ),
    "school.teachers": ResourceView(
        resource="teachers",
        remote_search=True,
        search_fields=("name", "employeeId", "email"),
        columns=(
            ("Name", lambda r: _text(r.get("name"))),
            ("Employee ID", lambda r: _text(r.get("employeeId"))),
            ("Email", lambda r: _text(r.get("email"))),
            ("Phone", lambda r: _text(r.get("phone"))),
            ("Subjects", lambda r: _text(r.get("subjects") if isinstance(r.get("subjects"), list) else [])),
            ("Classes", lambda r: _text(r.get("classes") if isinstance(r.get("classes"), list) else [])),
            ("Status", lambda r: active_label(r.get("status"))),
        ),
    ),
    "school.divisions": ResourceView(
        resource="divisions",
        search_fields=("name", "class"),
        page_size=12,
        columns=(
            ("Division", lambda r: _text(r.get("name"))),
            ("Class", lambda r: _text(r.get("class"))),
            ("Class Code", lambda r: _text(r.get("classCode"))),
            ("Students", lambda r: _text(r.get("totalStudents") or 0)),
            ("Status", lambda r: active_label(r.get("status"))),
        ),
    ),
    "school.academic_year": ResourceView(
        resource="academicyears",
        search_fields=("year", "startDate", "endDate"),
        page_size=12,
        columns=(
            ("Year", lambda r: _text(r.get("year"))),
            ("Start Date", lambda r: _text(r.get("startDate"))),
            ("End Date", lambda r: _text(r.get("endDate"))),
            ("Students", lambda r: _text(r.get("totalStudents") or 0)),
            ("Classes", lambda r: _text(r.get("totalClasses") or 0)),
            ("Status", lambda r: active_label(r.get("status"))),
        ),
    ),
    "school.documents": ResourceView(
        resource="documents",
        params={"status": "true"},
        search_fields=("name",),
        columns=(
            ("Name", lambda r: _text(r.get("name"))),
            ("Type", lambda r: _text(r.get("type") or "PDF")),
            ("Size", lambda r: _text(r.get("size") or "N/A")),
            ("Uploaded", lambda r: _date_only(r.get("createdAt"))),
            ("Uploaded By", lambda r: _text(r.get("uploadedBy") or "Admin")),
        ),
    ),
    "school.notifications": ResourceView(
        resource="notifications",
        params={"status": "true"},
        columns=(
            ("Title", lambda r: _text(r.get("title"))),
            ("Message", lambda r: _text(r.get("message"))),
            ("Type", lambda r: _text(r.get("type") or "info")),
            ("Received", lambda r: _text(r.get("createdAt"))),
            ("Read", lambda r: "yes" if r.get("read") else "no"),
        ),
    ),
}

# Pages whose records can be created, edited and deleted from the portal.
EDITABLE_RESOURCES = {"students": "school.students", "teachers": "school.teachers"}


@dataclass(frozen=True)
class Page:
    items: Sequence[Any]
    page: int
    pages: int
    total: int
    page_size: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


def paginate(items: Sequence[Any], page: int, page_size: int) -> Page:
    page_size = max(1, page_size)
    total = len(items)
    pages = max(1, math.ceil(total / page_size))
    page = min(max(1, page), pages)
    start = (page - 1) * page_size
    return Page(items=list(items[start:start + page_size]), page=page, pages=pages, total=total, page_size=page_size)


def filter_records(records: Sequence[dict], search: str, fields: Sequence[str]) -> list[dict]:
    needle = (search or "").strip().lower()
    if not needle or not fields:
        return list(records)
    return [r for r in records if any(needle in _text(r.get(name)).lower() for name in fields)]


def load_listing(
    client: BackendClient, view: ResourceView, *, token: str | None, page: int = 1, search: str = ""
) -> Page:
    params = dict(view.params)
    if view.remote_search and search:
        params["search"] = search
    records = client.list_records(view.resource, token=token, params=params)
    records = filter_records(records, search, view.search_fields)
    return paginate(records, page, view.page_size or settings.page_size)


OVERVIEW_STATS = (
    ("totalStudents", "Total Students"),
    ("totalClasses", "Total Classes"),
    ("averageAttendance", "Average Attendance"),
    ("totalTeachers", "Total Teachers"),
)


def load_overview(client: BackendClient, *, token: str | None) -> list[tuple[str, Any]]:
    stats = client.school_stats(token=token)
    return [(label, stats.get(key) or 0) for key, label in OVERVIEW_STATS]


# --- Student mood history ---

MOOD_PERIODS = {
    "week": "This Week",
    "month": "This Month",
    "7days": "Last 7 Days",
    "30days": "Last 30 Days",
    "all": "All Time",
}
DEFAULT_MOOD_PERIOD = "week"


def _month_earlier(day: date) -> date:
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


def mood_date_from(period: str, today: date | None = None) -> str | None:
    """First day (ISO) covered by a mood-history period; None means no lower bound."""
    today = today or date.today()
    if period in ("week", "7days"):
        return (today - timedelta(days=7)).isoformat()
    if period == "month":
        return _month_earlier(today).isoformat()
    if period == "30days":
        return (today - timedelta(days=30)).isoformat()
    return None


@dataclass(frozen=True)
class MoodEntry:
    date: str
    time: str
    category: str
    subcategory: str
    zone: str
    impact: str
    joyfulness: str
    note: str


def mood_entry(log: dict) -> MoodEntry:
    sub_category = log.get("subCategory")
    return MoodEntry(
        date=_date_only(log.get("date")),
        time=_text(log.get("time"))[:5],
        category=_text(log.get("calculatedEmotion")) or "N/A",
        subcategory=_nested_name(sub_category) or _text(log.get("addNote")) or "N/A",
        zone=_text(log.get("calculatedZone")) or "N/A",
        impact=_text(log.get("impact")),
        joyfulness=_text(log.get("joyfulness")),
        note=_text(log.get("addNote")),
    )


def load_mood_history(
    client: BackendClient, student_id: str, *, token: str | None, period: str = DEFAULT_MOOD_PERIOD,
    today: date | None = None,
) -> list[MoodEntry]:
    if period not in MOOD_PERIODS:
        period = DEFAULT_MOOD_PERIOD
    logs = client.student_mood_logs(student_id, token=token, date_from=mood_date_from(period, today))
    return [mood_entry(log) for log in logs]


# --- Registration form choices ---


@dataclass(frozen=True)
class RegistrationOptions:
    schools: list[dict] = field(default_factory=list)
    classes: list[dict] = field(default_factory=list)
    divisions: list[dict] = field(default_factory=list)

    def divisions_for(self, class_id: Any) -> list[dict]:
        """Divisions of the selected class, matched by class name or code."""
        if not class_id:
            return list(self.divisions)
        selected = next((c for c in self.classes if str(c.get("id")) == str(class_id)), None)
        if selected is None:
            return []
        code = selected.get("code")
        return [
            d for d in self.divisions
            if d.get("class") == selected.get("name") or (code and d.get("classCode") == code)
        ]


REGISTRATION_SOURCES = {
    UserType.SCHOOL: ("schools",),
    UserType.STUDENT: ("schools", "classes", "divisions"),
}


def load_registration_options(client: BackendClient, user_type: UserType) -> RegistrationOptions:
    loaded: dict[str, list[dict]] = {}
    for resource in REGISTRATION_SOURCES.get(user_type, ()):
        try:
            loaded[resource] = client.list_records(resource)
        except BackendError as exc:
            logger.error(f"Error fetching {resource} for registration: {exc.message}")
            loaded[resource] = []
    return RegistrationOptions(**loaded)
