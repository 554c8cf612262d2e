import enum
from dataclasses import dataclass
from typing import Protocol

from .models import UserType


@dataclass(frozen=True)
class RoleRoutes:
    prefix: str | None
    login_path: str
    dashboard_path: str


ROLE_ROUTES = {
    UserType.ADMIN: RoleRoutes(prefix=None, login_path="/login", dashboard_path="/dashboard"),
    UserType.STUDENT: RoleRoutes(prefix="/student", login_path="/student/login", dashboard_path="/student/dashboard"),
    UserType.SCHOOL: RoleRoutes(prefix="/school", login_path="/school/login", dashboard_path="/school/dashboard"),
    UserType.PARENT: RoleRoutes(prefix="/parent", login_path="/parent/login", dashboard_path="/parent/dashboard"),
}

# Checked in this order; the first matching prefix wins.
PREFIX_ORDER = (UserType.STUDENT, UserType.SCHOOL, UserType.PARENT)


class GuardState(str, enum.Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHORIZED = "authorized"
    MISROUTED = "misrouted"


@dataclass(frozen=True)
class GuardDecision:
    state: GuardState
    location: str | None = None
    return_to: str | None = None


class SessionView(Protocol):
    loading: bool

    @property
    def is_authenticated(self) -> bool: ...

    @property
    def user_type(self) -> UserType | None: ...


def _has_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def role_prefix(path: str) -> UserType | None:
    for user_type in PREFIX_ORDER:
        if _has_prefix(path, ROLE_ROUTES[user_type].prefix):
            return user_type
    return None


def classify(path: str) -> UserType:
    return role_prefix(path) or UserType.ADMIN


def login_path_for(path: str) -> str:
    return ROLE_ROUTES[classify(path)].login_path


def dashboard_for(user_type: UserType | None) -> str:
    return ROLE_ROUTES[user_type or UserType.ADMIN].dashboard_path


def evaluate(session: SessionView, path: str) -> GuardDecision:
    if session.loading:
        return GuardDecision(GuardState.LOADING)

    if not session.is_authenticated:
        return GuardDecision(GuardState.UNAUTHENTICATED, location=login_path_for(path), return_to=path)

    # Each role owns exactly one section; admin owns everything without a role prefix.
    user_type = session.user_type or UserType.ADMIN
    if classify(path) is not user_type:
        return GuardDecision(GuardState.MISROUTED, location=dashboard_for(user_type))
    return GuardDecision(GuardState.AUTHORIZED)
