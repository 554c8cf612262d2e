"""Server-rendered HTML for the portal."""

from html import escape
from typing import Any
from urllib.parse import urlencode

from .dispatcher import PAGE_ROUTES
from .guard import ROLE_ROUTES, classify
from .models import UserType
from .schemas import SCHOOL_ROLES
from .services import MOOD_PERIODS, MoodEntry, Page, RegistrationOptions, ResourceView


APP_NAME = "Serene Minds"

LOGIN_TITLES = {
    UserType.ADMIN: "Admin Login",
    UserType.STUDENT: "Student Login",
    UserType.SCHOOL: "School Login",
    UserType.PARENT: "Parent Login",
}


def layout(title: str, body: str, *, nav: str = "") -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{escape(title)} | {APP_NAME}</title>
</head>
<body>
{nav}
<main>
<h1>{escape(title)}</h1>
{body}
</main>
</body>
</html>"""


def _errors_list(errors: dict[str, str] | None) -> str:
    if not errors:
        return ""
    items = "".join(f'<li data-field="{escape(k)}">{escape(v)}</li>' for k, v in errors.items())
    return f'<ul class="errors">{items}</ul>'


def _input(name: str, label: str, *, kind: str = "text", value: Any = "") -> str:
    shown = "" if kind == "password" or value is None else escape(str(value))
    return (
        f'<label for="{name}">{escape(label)}</label>'
        f'<input id="{name}" name="{name}" type="{kind}" value="{shown}">'
    )


def render_loading() -> str:
    return layout("Loading...", '<p class="loading">Loading...</p>')


def render_welcome() -> str:
    links = "".join(
        f'<li><a href="{routes.login_path}">{escape(LOGIN_TITLES[user_type])}</a></li>'
        for user_type, routes in ROLE_ROUTES.items()
    )
    body = (
        "<p>Track how students feel, spot patterns early, and keep schools and families in the loop.</p>"
        f'<ul class="logins">{links}</ul>'
        '<p><a href="/school/register">Register a school account</a> or '
        '<a href="/student/register">register as a student</a>.</p>'
    )
    return layout(f"Welcome to {APP_NAME}", body)


def render_login(user_type: UserType, *, next_path: str = "", email: str = "", errors: dict[str, str] | None = None) -> str:
    action = ROLE_ROUTES[user_type].login_path
    body = (
        _errors_list(errors)
        + f'<form method="post" action="{action}">'
        + _input("email", "Email", kind="email", value=email)
        + _input("password", "Password", kind="password")
        + f'<input type="hidden" name="next" value="{escape(next_path or "")}">'
        + '<button type="submit">Sign in</button></form>'
        + '<p><a href="/forgot-password">Forgot password?</a></p>'
    )
    return layout(LOGIN_TITLES[user_type], body)


REGISTER_FIELDS = {
    UserType.SCHOOL: (
        ("name", "Name", "text"),
        ("email", "Email", "email"),
        ("phone", "Phone", "tel"),
        ("schoolId", "School", "schools"),
        ("role", "Role", "roles"),
        ("password", "Password", "password"),
        ("confirmPassword", "Confirm Password", "password"),
    ),
    UserType.STUDENT: (
        ("name", "Name", "text"),
        ("studentId", "Student ID", "text"),
        ("email", "Email", "email"),
        ("phone", "Phone", "tel"),
        ("schoolId", "School", "schools"),
        ("classId", "Class", "classes"),
        ("divisionId", "Division", "divisions"),
        ("password", "Password", "password"),
        ("confirmPassword", "Confirm Password", "password"),
    ),
}


def _select(name: str, label: str, choices: list[tuple[Any, str]], *, value: Any = "", placeholder: str = "") -> str:
    chosen = "" if value is None else str(value)
    options = [f'<option value="">{escape(placeholder)}</option>'] if placeholder else []
    for choice, text in choices:
        selected = " selected" if str(choice) == chosen else ""
        options.append(f'<option value="{escape(str(choice))}"{selected}>{escape(text)}</option>')
    return (
        f'<label for="{name}">{escape(label)}</label>'
        f'<select id="{name}" name="{name}">{"".join(options)}</select>'
    )


def _class_label(item: dict) -> str:
    name = str(item.get("name") or "")
    return f"{name} ({item['code']})" if item.get("code") else name


def _register_choices(kind: str, options: RegistrationOptions, values: dict[str, Any]) -> list[tuple[Any, str]]:
    if kind == "roles":
        return list(SCHOOL_ROLES)
    if kind == "schools":
        return [(s.get("id"), str(s.get("name") or "")) for s in options.schools]
    if kind == "classes":
        return [(c.get("id"), _class_label(c)) for c in options.classes]
    return [(d.get("id"), str(d.get("name") or "")) for d in options.divisions_for(values.get("classId"))]


def render_register(
    user_type: UserType,
    *,
    values: dict[str, Any] | None = None,
    errors: dict[str, str] | None = None,
    options: RegistrationOptions | None = None,
) -> str:
    values = values or {}
    options = options or RegistrationOptions()
    fields = []
    for name, label, kind in REGISTER_FIELDS[user_type]:
        if kind in ("schools", "classes", "divisions", "roles"):
            placeholder = "" if kind == "roles" else f"Select a {label}"
            default = "school_admin" if kind == "roles" else ""
            choices = _register_choices(kind, options, values)
            fields.append(_select(name, label, choices, value=values.get(name, default), placeholder=placeholder))
        else:
            fields.append(_input(name, label, kind=kind, value=values.get(name, "")))
    action = f"{ROLE_ROUTES[user_type].prefix}/register"
    body = (
        _errors_list(errors)
        + f'<form method="post" action="{action}">{"".join(fields)}<button type="submit">Register</button></form>'
        + f'<p>Already registered? <a href="{ROLE_ROUTES[user_type].login_path}">Sign in</a></p>'
    )
    return layout(f"{user_type.value.title()} Registration", body)


AUTH_NOTICES = {
    "auth.register": ("Register", "Admin accounts are created by the platform team."),
    "auth.forgot_password": ("Forgot Password", "Contact your school administrator to reset your password."),
    "auth.reset_password": ("Reset Password", "Use the link from your reset email to choose a new password."),
}

REGISTER_PAGES = {
    "auth.school_register": UserType.SCHOOL,
    "auth.student_register": UserType.STUDENT,
}


def render_auth_page(page: str, *, next_path: str = "", options: RegistrationOptions | None = None) -> str:
    login_pages = {
        "auth.login": UserType.ADMIN,
        "auth.student_login": UserType.STUDENT,
        "auth.school_login": UserType.SCHOOL,
        "auth.parent_login": UserType.PARENT,
    }
    if page in login_pages:
        return render_login(login_pages[page], next_path=next_path)
    if page in REGISTER_PAGES:
        return render_register(REGISTER_PAGES[page], options=options)
    title, message = AUTH_NOTICES[page]
    return layout(title, f'<p>{escape(message)}</p><p><a href="/login">Back to login</a></p>')


def section_nav(path: str, user: dict | None) -> str:
    section = classify(path)
    links = []
    for route, (_, title) in PAGE_ROUTES.items():
        if "{" in route or classify(route) is not section:
            continue
        current = ' aria-current="page"' if route == path else ""
        links.append(f'<li><a href="{route}"{current}>{escape(title)}</a></li>')
    name = escape(str((user or {}).get("name") or (user or {}).get("email") or ""))
    return (
        f'<nav class="sidebar sidebar-{section.value}"><ul>{"".join(links)}</ul>'
        f'<form method="post" action="/logout"><span class="who">{name}</span>'
        '<button type="submit">Logout</button></form></nav>'
    )


def render_page(title: str, path: str, user: dict | None, body: str = "") -> str:
    return layout(title, body or '<p class="empty">Nothing to show yet.</p>', nav=section_nav(path, user))


def _page_link(path: str, page: int, search: str) -> str:
    query = {"page": page}
    if search:
        query["search"] = search
    return f"{path}?{urlencode(query)}"


def render_listing(
    view: ResourceView,
    listing: Page | None,
    *,
    path: str,
    search: str = "",
    error: str | None = None,
    editable: bool = False,
    editing: dict | None = None,
    form_errors: dict[str, str] | None = None,
) -> str:
    search_form = (
        f'<form method="get" action="{path}" class="search">'
        f'<input name="search" type="search" value="{escape(search)}" placeholder="Search">'
        '<button type="submit">Search</button></form>'
    )
    if error:
        return search_form + f'<p class="error">{escape(error)}</p>'

    actions = editable or bool(view.links)
    head = "".join(f"<th>{escape(h)}</th>" for h in view.headers)
    if actions:
        head += "<th></th>"
    rows = []
    for record in listing.items:
        cells = "".join(f"<td>{escape(value)}</td>" for value in view.row(record))
        record_id = escape(str(record.get("id", "")))
        links = "".join(f'<a href="{path}/{record_id}/{suffix}">{escape(label)}</a>' for label, suffix in view.links)
        if editable:
            cells += (
                f'<td>{links}<a href="{path}?edit={record_id}">Edit</a>'
                f'<form method="post" action="{path}/{record_id}/delete">'
                '<button type="submit">Delete</button></form></td>'
            )
        elif links:
            cells += f"<td>{links}</td>"
        rows.append(f"<tr>{cells}</tr>")
    if not rows:
        rows.append(f'<tr><td colspan="{len(view.headers) + int(actions)}">No records found.</td></tr>')

    pager = [f'<span class="count">Page {listing.page} of {listing.pages} ({listing.total} total)</span>']
    if listing.has_previous:
        pager.insert(0, f'<a rel="prev" href="{_page_link(path, listing.page - 1, search)}">Previous</a>')
    if listing.has_next:
        pager.append(f'<a rel="next" href="{_page_link(path, listing.page + 1, search)}">Next</a>')

    html = (
        search_form
        + f'<table class="records"><thead><tr>{head}</tr></thead><tbody>{"".join(rows)}</tbody></table>'
        + f'<div class="pager">{"".join(pager)}</div>'
    )
    if editable:
        html += render_record_form(view.resource, path=path, record=editing, errors=form_errors)
    return html


RECORD_FIELDS = {
    "students": (
        ("name", "Name"),
        ("studentId", "Student ID"),
        ("classId", "Class ID"),
        ("divisionId", "Division ID"),
        ("email", "Email"),
        ("phone", "Phone"),
        ("status", "Status"),
    ),
    "teachers": (
        ("name", "Name"),
        ("employeeId", "Employee ID"),
        ("email", "Email"),
        ("phone", "Phone"),
        ("subjects", "Subjects (comma separated)"),
        ("classes", "Classes (comma separated)"),
        ("status", "Status"),
    ),
}


def render_record_form(
    resource: str, *, path: str, record: dict | None = None, errors: dict[str, str] | None = None
) -> str:
    record = {"status": "active", **(record or {})}
    action = f"{path}/{record['id']}" if record.get("id") is not None else path
    fields = []
    for name, label in RECORD_FIELDS[resource]:
        value = record.get(name, "")
        if isinstance(value, list):
            value = ", ".join(str(item) for item in value)
        elif isinstance(value, bool):
            value = "active" if value else "inactive"
        fields.append(_input(name, label, value=value))
    fields = "".join(fields)
    heading = "Edit" if record.get("id") is not None else "Add"
    return (
        f'<section class="record-form"><h2>{heading}</h2>{_errors_list(errors)}'
        f'<form method="post" action="{action}">{fields}<button type="submit">Save</button></form></section>'
    )


def render_stats(stats: list[tuple[str, Any]] | None, *, error: str | None = None) -> str:
    if error:
        return f'<p class="error">{escape(error)}</p>'
    cards = "".join(
        f'<div class="stat"><div class="label">{escape(label)}</div><div class="value">{escape(str(value))}</div></div>'
        for label, value in stats or []
    )
    return f'<div class="stats">{cards}</div>'


MOOD_COLUMNS = ("Date", "Time", "Category", "Subcategory", "Zone", "Impact", "Joyfulness", "Note")


def render_mood_history(
    entries: list[MoodEntry] | None, *, path: str, period: str, error: str | None = None
) -> str:
    tabs = []
    for key, label in MOOD_PERIODS.items():
        current = ' aria-current="page"' if key == period else ""
        tabs.append(f'<a href="{path}?{urlencode({"period": key})}"{current}>{escape(label)}</a>')
    html = f'<nav class="periods">{"".join(tabs)}</nav>'
    if error:
        return html + f'<p class="error">{escape(error)}</p>'
    if not entries:
        return html + '<p class="empty">No mood logs for this period.</p>'
    head = "".join(f"<th>{label}</th>" for label in MOOD_COLUMNS)
    rows = "".join(
        "<tr>"
        + "".join(
            f"<td>{escape(value)}</td>"
            for value in (e.date, e.time, e.category, e.subcategory, e.zone, e.impact, e.joyfulness, e.note)
        )
        + "</tr>"
        for e in entries
    )
    return html + f'<table class="mood-history"><thead><tr>{head}</tr></thead><tbody>{rows}</tbody></table>'
