"""Tests for the login flows and listing helpers."""

from __future__ import annotations

from datetime import date

import pytest
from conftest import FakeBackendClient, make_token

from portal.auth_module.api_client import BackendError
from portal.auth_module.context import AuthContext
from portal.auth_module.models import UserType
from portal.auth_module.schemas import LoginForm, SchoolRegisterForm
from portal.auth_module.services import (
    RESOURCE_VIEWS,
    RegistrationOptions,
    division_letter,
    filter_records,
    load_listing,
    load_mood_history,
    load_overview,
    load_registration_options,
    login_user,
    logout_user,
    mood_date_from,
    mood_entry,
    paginate,
    register_account,
    safe_next,
)
from portal.auth_module.storage import MemoryStorage


class TestSafeNext:
    def test_accepts_local_paths(self) -> None:
        assert safe_next("/school/students?page=2") == "/school/students?page=2"

    @pytest.mark.parametrize("value", [None, "", "school", "//evil.example", "https://evil.example/x", "/\\evil"])
    def test_rejects_everything_else(self, value) -> None:
        assert safe_next(value) is None


class TestLoginFlows:
    def test_login_goes_to_resolved_dashboard(self) -> None:
        backend = FakeBackendClient()
        backend.add_account(UserType.SCHOOL, {"id": 1, "email": "s@x.io"}, make_token(type="student"))
        auth = AuthContext(MemoryStorage())
        target = login_user(auth, backend, user_type=UserType.SCHOOL, form=LoginForm(email="s@x.io", password="pw"))
        assert target == "/student/dashboard"

    def test_login_honours_next(self) -> None:
        backend = FakeBackendClient()
        backend.add_account(UserType.PARENT, {"id": 1, "email": "p@x.io"}, make_token(type="parent"))
        auth = AuthContext(MemoryStorage())
        target = login_user(
            auth, backend, user_type=UserType.PARENT,
            form=LoginForm(email="p@x.io", password="pw"), next_path="/parent/calendar",
        )
        assert target == "/parent/calendar"

    def test_rejected_login_leaves_no_session(self) -> None:
        storage = MemoryStorage()
        with pytest.raises(BackendError):
            login_user(
                AuthContext(storage), FakeBackendClient(),
                user_type=UserType.ADMIN, form=LoginForm(email="x@y.io", password="pw"),
            )
        assert storage.items == {}

    def test_register_signs_in(self) -> None:
        backend = FakeBackendClient()
        storage = MemoryStorage()
        form = SchoolRegisterForm.model_validate(
            {"name": "Head", "email": "h@s.io", "password": "secret1", "confirmPassword": "secret1", "schoolId": "4"}
        )
        assert register_account(AuthContext(storage), backend, form=form) == "/school/dashboard"
        assert storage.items["userType"] == "school"
        assert backend.calls[0][2]["schoolId"] == 4

    def test_logout_returns_role_login(self) -> None:
        auth = AuthContext(MemoryStorage())
        auth.login({"id": 1}, make_token(type="parent"))
        assert logout_user(auth) == "/parent/login"
        assert logout_user(auth) == "/login"


class TestPaginate:
    def test_slices(self) -> None:
        page = paginate(list(range(25)), 2, 10)
        assert page.items == list(range(10, 20))
        assert page.pages == 3
        assert page.has_previous and page.has_next

    def test_clamps_out_of_range_pages(self) -> None:
        assert paginate(list(range(25)), 9, 10).page == 3
        assert paginate(list(range(25)), -1, 10).page == 1

    def test_empty(self) -> None:
        page = paginate([], 1, 10)
        assert page.pages == 1
        assert page.items == []
        assert not page.has_next


class TestListings:
    def test_filter_records(self) -> None:
        records = [{"name": "Grade 1 - A", "class": "1"}, {"name": "Grade 2 - B", "class": "2"}]
        assert filter_records(records, " grade 2 ", ("name",)) == [records[1]]
        assert filter_records(records, "", ("name",)) == records

    def test_division_letter(self) -> None:
        assert division_letter("Grade 10 - A") == "A"
        assert division_letter("B") == "B"
        assert division_letter(None) == ""

    def test_students_listing_searches_remotely(self) -> None:
        backend = FakeBackendClient()
        backend.records["students"] = [{"id": i, "name": f"Student {i}"} for i in range(15)]
        page = load_listing(backend, RESOURCE_VIEWS["school.students"], token="t", page=2, search="Stu")
        assert backend.calls[0] == ("list", "students", {"status": "active", "search": "Stu"})
        assert len(page.items) == 5

    def test_student_row(self) -> None:
        view = RESOURCE_VIEWS["school.students"]
        row = view.row({"name": "Ann", "class": {"name": "Grade 3"}, "division": {"name": "Grade 3 - C"}, "status": True})
        assert row[0] == "Ann"
        assert row[2] == "Grade 3"
        assert row[3] == "C"
        assert row[-1] == "active"

    def test_overview_defaults_missing_stats(self) -> None:
        backend = FakeBackendClient()
        backend.stats = {"totalStudents": 120}
        stats = dict(load_overview(backend, token="t"))
        assert stats["Total Students"] == 120
        assert stats["Total Teachers"] == 0


class TestMoodHistory:
    def test_period_lower_bounds(self) -> None:
        today = date(2024, 3, 31)
        assert mood_date_from("week", today) == "2024-03-24"
        assert mood_date_from("7days", today) == "2024-03-24"
        assert mood_date_from("30days", today) == "2024-03-01"
        assert mood_date_from("month", today) == "2024-02-29"
        assert mood_date_from("month", date(2024, 1, 15)) == "2023-12-15"
        assert mood_date_from("all", today) is None

    def test_entry_fields(self) -> None:
        entry = mood_entry(
            {
                "date": "2024-03-02T00:00:00.000Z",
                "time": "08:15:42",
                "calculatedEmotion": "Calm",
                "subCategory": {"name": "Rested"},
                "calculatedZone": "green",
                "impact": 3,
                "addNote": "slept well",
            }
        )
        assert entry.date == "2024-03-02"
        assert entry.time == "08:15"
        assert entry.subcategory == "Rested"
        assert entry.zone == "green"
        assert entry.impact == "3"
        assert entry.joyfulness == ""

    def test_entry_fallbacks(self) -> None:
        entry = mood_entry({"addNote": "rough day"})
        assert entry.category == "N/A"
        assert entry.subcategory == "rough day"
        assert entry.zone == "N/A"

    def test_unknown_period_uses_week(self) -> None:
        backend = FakeBackendClient()
        backend.mood_logs = [{"calculatedEmotion": "Happy"}]
        entries = load_mood_history(backend, "12", token="t", period="decade", today=date(2024, 3, 31))
        assert backend.calls == [("mood_logs", "12", "2024-03-24")]
        assert entries[0].category == "Happy"


class TestRegistrationOptions:
    CLASSES = [{"id": 1, "name": "Grade 1", "code": "G1"}, {"id": 2, "name": "Grade 2"}]
    DIVISIONS = [
        {"id": 10, "name": "Grade 1 - A", "class": "Grade 1"},
        {"id": 11, "name": "Grade 1 - B", "classCode": "G1"},
        {"id": 20, "name": "Grade 2 - A", "class": "Grade 2"},
    ]

    def test_divisions_follow_class(self) -> None:
        options = RegistrationOptions(classes=self.CLASSES, divisions=self.DIVISIONS)
        assert [d["id"] for d in options.divisions_for("1")] == [10, 11]
        assert [d["id"] for d in options.divisions_for(2)] == [20]
        assert options.divisions_for("99") == []
        assert len(options.divisions_for("")) == 3

    def test_student_registration_loads_all_choices(self) -> None:
        backend = FakeBackendClient()
        backend.records = {"schools": [{"id": 1, "name": "Hill"}], "classes": self.CLASSES}
        options = load_registration_options(backend, UserType.STUDENT)
        assert options.schools == [{"id": 1, "name": "Hill"}]
        assert options.classes == self.CLASSES
        assert [call[1] for call in backend.calls] == ["schools", "classes", "divisions"]

    def test_school_registration_only_needs_schools(self) -> None:
        backend = FakeBackendClient()
        load_registration_options(backend, UserType.SCHOOL)
        assert [call[1] for call in backend.calls] == ["schools"]

    def test_backend_failure_leaves_choices_empty(self) -> None:
        backend = FakeBackendClient()
        backend.failures["list"] = BackendError(None, "Network error. Please try again.")
        assert load_registration_options(backend, UserType.STUDENT) == RegistrationOptions()
