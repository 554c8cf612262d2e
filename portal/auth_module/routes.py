import logging
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from .api_client import BackendClient, BackendError
from .context import AuthContext
from .dispatcher import Dispatch, Outcome, dispatch, normalize_path
from .middleware import get_auth_context, get_backend_client
from .models import UserType
from .pages import (
    REGISTER_PAGES,
    render_auth_page,
    render_listing,
    render_loading,
    render_login,
    render_mood_history,
    render_page,
    render_register,
    render_stats,
    render_welcome,
)
from .schemas import LoginForm, SchoolRegisterForm, StudentForm, StudentRegisterForm, TeacherForm, form_errors
from .services import (
    DEFAULT_MOOD_PERIOD,
    EDITABLE_RESOURCES,
    MOOD_PERIODS,
    RESOURCE_VIEWS,
    load_listing,
    load_mood_history,
    load_overview,
    load_registration_options,
    login_user,
    logout_user,
    register_account,
    safe_next,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Portal"])

LOGIN_SECTIONS = {
    "student": UserType.STUDENT,
    "school": UserType.SCHOOL,
    "parent": UserType.PARENT,
}

RECORD_FORMS = {"students": StudentForm, "teachers": TeacherForm}


def _page_number(value: str | None) -> int:
    try:
        return max(1, int(value or 1))
    except ValueError:
        return 1


def _redirect_url(result: Dispatch, query: str = "") -> str:
    if not result.return_to:
        return result.location
    return_to = f"{result.return_to}?{query}" if query else result.return_to
    return f"{result.location}?{urlencode({'next': return_to})}"


def _guard_redirect(auth: AuthContext, path: str, request: Request) -> RedirectResponse | None:
    result = dispatch(auth, path)
    if result.outcome is Outcome.PAGE:
        return None
    if result.outcome is Outcome.REDIRECT:
        return RedirectResponse(_redirect_url(result), status_code=status.HTTP_303_SEE_OTHER)
    return RedirectResponse(str(request.url.path), status_code=status.HTTP_303_SEE_OTHER)


def _render_role_page(
    result: Dispatch,
    path: str,
    auth: AuthContext,
    client: BackendClient,
    *,
    page: int = 1,
    search: str = "",
    edit: str = "",
    period: str = DEFAULT_MOOD_PERIOD,
    editing: dict | None = None,
    errors: dict[str, str] | None = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    body = ""
    view = RESOURCE_VIEWS.get(result.page)
    if view is not None:
        listing, error = None, None
        try:
            listing = load_listing(client, view, token=auth.token, page=page, search=search)
        except BackendError as exc:
            logger.error(f"Error fetching {view.resource}: {exc.message}")
            error = f"Failed to load {view.resource}. {exc.message}"
        if editing is None and edit and listing is not None:
            editing = next((r for r in listing.items if str(r.get("id")) == edit), None)
        body = render_listing(
            view,
            listing,
            path=path,
            search=search,
            error=error,
            editable=view.resource in EDITABLE_RESOURCES,
            editing=editing,
            form_errors=errors,
        )
    elif result.page == "school.overview":
        try:
            body = render_stats(load_overview(client, token=auth.token))
        except BackendError as exc:
            logger.error(f"Error fetching overview stats: {exc.message}")
            body = render_stats(None, error=f"Failed to load overview. {exc.message}")
    elif result.page == "school.student_mood_history":
        student_id = result.params["id"]
        period = period if period in MOOD_PERIODS else DEFAULT_MOOD_PERIOD
        try:
            entries = load_mood_history(client, student_id, token=auth.token, period=period)
            body = render_mood_history(entries, path=path, period=period)
        except BackendError as exc:
            logger.error(f"Error fetching mood history for student {student_id}: {exc.message}")
            body = render_mood_history(None, path=path, period=period, error=f"Failed to load mood history. {exc.message}")
    return HTMLResponse(render_page(result.title, path, auth.user, body), status_code=status_code)


def _submit_login(
    user_type: UserType,
    *,
    email: str,
    password: str,
    next_path: str,
    auth: AuthContext,
    client: BackendClient,
):
    next_path = safe_next(next_path) or ""
    try:
        form = LoginForm(email=email, password=password)
    except ValidationError as exc:
        return HTMLResponse(
            render_login(user_type, next_path=next_path, email=email, errors=form_errors(exc, LoginForm)),
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    try:
        target = login_user(auth, client, user_type=user_type, form=form, next_path=next_path)
    except BackendError as exc:
        logger.warning(f"Login failed for {form.email}: {exc.message}")
        rejected = exc.status_code in (400, 401, 403, 404)
        return HTMLResponse(
            render_login(user_type, next_path=next_path, email=email, errors={"form": exc.message}),
            status_code=status.HTTP_401_UNAUTHORIZED if rejected else status.HTTP_502_BAD_GATEWAY,
        )
    return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/login", response_class=HTMLResponse)
def login(
    email: str = Form(""),
    password: str = Form(""),
    next_path: str = Form("", alias="next"),
    auth: AuthContext = Depends(get_auth_context),
    client: BackendClient = Depends(get_backend_client),
):
    return _submit_login(UserType.ADMIN, email=email, password=password, next_path=next_path, auth=auth, client=client)


async def _submit_registration(request: Request, user_type: UserType, auth: AuthContext, client: BackendClient):
    values: dict[str, Any] = dict(await request.form())
    form_class = SchoolRegisterForm if user_type is UserType.SCHOOL else StudentRegisterForm

    async def rerender(errors: dict[str, str], status_code: int) -> HTMLResponse:
        options = await run_in_threadpool(load_registration_options, client, user_type)
        return HTMLResponse(
            render_register(user_type, values=values, errors=errors, options=options), status_code=status_code
        )

    try:
        form = form_class.model_validate(values)
    except ValidationError as exc:
        return await rerender(form_errors(exc, form_class), status.HTTP_400_BAD_REQUEST)
    try:
        target = await run_in_threadpool(register_account, auth, client, form=form)
    except BackendError as exc:
        logger.warning(f"Registration failed for {form.email}: {exc.message}")
        status_code = status.HTTP_400_BAD_REQUEST if exc.status_code and exc.status_code < 500 else status.HTTP_502_BAD_GATEWAY
        return await rerender({"form": exc.message}, status_code)
    return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/school/register", response_class=HTMLResponse)
async def register_school(
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    client: BackendClient = Depends(get_backend_client),
):
    return await _submit_registration(request, UserType.SCHOOL, auth, client)


@router.post("/student/register", response_class=HTMLResponse)
async def register_student(
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    client: BackendClient = Depends(get_backend_client),
):
    return await _submit_registration(request, UserType.STUDENT, auth, client)


@router.post("/{section}/login", response_class=HTMLResponse)
def section_login(
    section: str,
    email: str = Form(""),
    password: str = Form(""),
    next_path: str = Form("", alias="next"),
    auth: AuthContext = Depends(get_auth_context),
    client: BackendClient = Depends(get_backend_client),
):
    if section not in LOGIN_SECTIONS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown login page")
    return _submit_login(
        LOGIN_SECTIONS[section], email=email, password=password, next_path=next_path, auth=auth, client=client
    )


@router.post("/logout")
def logout(auth: AuthContext = Depends(get_auth_context)):
    return RedirectResponse(logout_user(auth), status_code=status.HTTP_303_SEE_OTHER)


async def _save_record(
    request: Request, resource: str, record_id: str | None, auth: AuthContext, client: BackendClient
):
    if resource not in EDITABLE_RESOURCES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown resource")
    path = f"/school/{resource}"
    blocked = _guard_redirect(auth, path, request)
    if blocked is not None:
        return blocked

    values: dict[str, Any] = dict(await request.form())
    if record_id is not None:
        values["id"] = record_id
    result = dispatch(auth, path)
    try:
        record = RECORD_FORMS[resource].model_validate(values)
    except ValidationError as exc:
        return await run_in_threadpool(
            _render_role_page, result, path, auth, client,
            editing=values, errors=form_errors(exc, RECORD_FORMS[resource]), status_code=status.HTTP_400_BAD_REQUEST,
        )

    try:
        if record_id is None:
            await run_in_threadpool(client.create_record, resource, record.payload(), token=auth.token)
        else:
            await run_in_threadpool(client.update_record, resource, record_id, record.payload(), token=auth.token)
    except BackendError as exc:
        logger.error(f"Error saving {resource} record: {exc.message}")
        return await run_in_threadpool(
            _render_role_page, result, path, auth, client,
            editing=values, errors={"form": exc.message}, status_code=status.HTTP_502_BAD_GATEWAY,
        )
    logger.info(f"Saved {resource} record {record_id or '(new)'}")
    return RedirectResponse(path, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/school/{resource}", response_class=HTMLResponse)
async def create_school_record(
    resource: str,
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    client: BackendClient = Depends(get_backend_client),
):
    return await _save_record(request, resource, None, auth, client)


@router.post("/school/{resource}/{record_id}", response_class=HTMLResponse)
async def update_school_record(
    resource: str,
    record_id: str,
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    client: BackendClient = Depends(get_backend_client),
):
    return await _save_record(request, resource, record_id, auth, client)


@router.post("/school/{resource}/{record_id}/delete", response_class=HTMLResponse)
def delete_school_record(
    resource: str,
    record_id: str,
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    client: BackendClient = Depends(get_backend_client),
):
    if resource not in EDITABLE_RESOURCES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown resource")
    path = f"/school/{resource}"
    blocked = _guard_redirect(auth, path, request)
    if blocked is not None:
        return blocked
    try:
        client.delete_record(resource, record_id, token=auth.token)
    except BackendError as exc:
        logger.error(f"Error deleting {resource} record {record_id}: {exc.message}")
        return _render_role_page(
            dispatch(auth, path), path, auth, client,
            errors={"form": f"Failed to delete. {exc.message}"}, status_code=status.HTTP_502_BAD_GATEWAY,
        )
    logger.info(f"Deleted {resource} record {record_id}")
    return RedirectResponse(path, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/{path:path}", response_class=HTMLResponse)
def render_path(
    path: str,
    request: Request,
    page: str = "1",
    search: str = "",
    edit: str = "",
    period: str = DEFAULT_MOOD_PERIOD,
    next_path: str = Query("", alias="next"),
    auth: AuthContext = Depends(get_auth_context),
    client: BackendClient = Depends(get_backend_client),
):
    full_path = normalize_path(path)
    result = dispatch(auth, full_path)

    if result.outcome is Outcome.LOADING:
        return HTMLResponse(render_loading())
    if result.outcome is Outcome.REDIRECT:
        return RedirectResponse(_redirect_url(result, request.url.query), status_code=status.HTTP_302_FOUND)
    if result.outcome is Outcome.WELCOME:
        return HTMLResponse(render_welcome())
    if result.outcome is Outcome.AUTH_PAGE:
        options = None
        if result.page in REGISTER_PAGES:
            options = load_registration_options(client, REGISTER_PAGES[result.page])
        return HTMLResponse(render_auth_page(result.page, next_path=safe_next(next_path) or "", options=options))
    return _render_role_page(
        result, full_path, auth, client, page=_page_number(page), search=search, edit=edit, period=period
    )
