import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator


REGISTER_EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
RECORD_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SCHOOL_ROLES = (
    ("school_admin", "School Admin"),
    ("school_staff", "School Staff"),
    ("school_teacher", "School Teacher"),
)


def _required(value: str | None, message: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(message)
    return str(value).strip()


def _split_csv(value: Any) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def form_errors(exc: ValidationError, model: type[BaseModel]) -> dict[str, str]:
    """Map pydantic errors onto form field names, first message wins.

    Errors raised while validating a default are reported under the attribute
    name rather than the alias, so both are folded onto the alias the form
    posts.
    """
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "form"
        info = model.model_fields.get(field)
        if info is not None and info.alias:
            field = info.alias
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, message)
    return errors


class FormModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_default=True)


class LoginForm(FormModel):
    email: str = ""
    password: str = ""

    @field_validator("email")
    @classmethod
    def email_required(cls, value: str) -> str:
        return _required(value, "Email is required")

    @field_validator("password")
    @classmethod
    def password_required(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value


class RegisterForm(FormModel):
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = Field(default="", alias="confirmPassword")
    phone: str | None = None

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        return _required(value, "Name is required")

    @field_validator("email")
    @classmethod
    def email_valid(cls, value: str) -> str:
        value = _required(value, "Email is required")
        if not REGISTER_EMAIL_PATTERN.search(value):
            raise ValueError("Email is invalid")
        return value

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        return value

    @field_validator("phone")
    @classmethod
    def blank_phone(cls, value: str | None) -> str | None:
        if not value or not value.strip():
            return None
        return value.strip()

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        if not value:
            raise ValueError("Please confirm your password")
        if "password" in info.data and value != info.data["password"]:
            raise ValueError("Passwords do not match")
        return value


class SchoolRegisterForm(RegisterForm):
    school_id: int | None = Field(default=None, alias="schoolId")
    role: str = "school_admin"

    @field_validator("school_id", mode="before")
    @classmethod
    def school_selected(cls, value: Any) -> Any:
        if value in (None, ""):
            raise ValueError("Please select a school")
        return value

    @field_validator("role")
    @classmethod
    def known_role(cls, value: str) -> str:
        if value not in {role for role, _ in SCHOOL_ROLES}:
            raise ValueError("Please select a valid role")
        return value

    def payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "password": self.password,
            "phone": self.phone,
            "schoolId": self.school_id,
            "role": self.role,
        }


class StudentRegisterForm(RegisterForm):
    student_id: str = Field(default="", alias="studentId")
    school_id: int | None = Field(default=None, alias="schoolId")
    class_id: int | None = Field(default=None, alias="classId")
    division_id: int | None = Field(default=None, alias="divisionId")

    @field_validator("student_id")
    @classmethod
    def student_id_required(cls, value: str) -> str:
        return _required(value, "Student ID is required")

    @field_validator("school_id", "class_id", "division_id", mode="before")
    @classmethod
    def blank_ids(cls, value: Any) -> Any:
        return None if value == "" else value

    def payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "studentId": self.student_id,
            "email": self.email,
            "password": self.password,
            "phone": self.phone,
            "schoolId": self.school_id,
            "classId": self.class_id,
            "divisionId": self.division_id,
        }


class StudentForm(FormModel):
    name: str = ""
    student_id: str = Field(default="", alias="studentId")
    class_id: int | None = Field(default=None, alias="classId")
    division_id: int | None = Field(default=None, alias="divisionId")
    email: str = ""
    phone: str = ""
    status: str = "active"

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        return _required(value, "Please enter a student name")

    @field_validator("student_id")
    @classmethod
    def student_id_required(cls, value: str) -> str:
        return _required(value, "Please enter a student ID")

    @field_validator("email")
    @classmethod
    def email_valid(cls, value: str) -> str:
        value = _required(value, "Please enter an email address")
        if not RECORD_EMAIL_PATTERN.match(value):
            raise ValueError("Please enter a valid email address")
        return value

    @field_validator("class_id", "division_id", mode="before")
    @classmethod
    def blank_ids(cls, value: Any) -> Any:
        return None if value == "" else value

    @field_validator("status")
    @classmethod
    def known_status(cls, value: str) -> str:
        if value not in {"active", "inactive"}:
            raise ValueError("Status must be active or inactive")
        return value

    def payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class TeacherForm(FormModel):
    name: str = ""
    employee_id: str = Field(default="", alias="employeeId")
    email: str = ""
    phone: str = ""
    subjects: list[str] = Field(default_factory=list)
    classes: list[str] = Field(default_factory=list)
    status: str = "active"

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        return _required(value, "Please enter a teacher name")

    @field_validator("employee_id")
    @classmethod
    def employee_id_required(cls, value: str) -> str:
        return _required(value, "Please enter an employee ID")

    @field_validator("email")
    @classmethod
    def email_valid(cls, value: str) -> str:
        value = _required(value, "Please enter an email address")
        if not RECORD_EMAIL_PATTERN.match(value):
            raise ValueError("Please enter a valid email address")
        return value

    @field_validator("subjects", "classes", mode="before")
    @classmethod
    def comma_separated(cls, value: Any) -> list[str]:
        return _split_csv(value)

    @field_validator("status")
    @classmethod
    def known_status(cls, value: str) -> str:
        if value not in {"active", "inactive"}:
            raise ValueError("Status must be active or inactive")
        return value

    def payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class LoginData(BaseModel):
    user: dict[str, Any]
    token: str = Field(min_length=1)


class LoginEnvelope(BaseModel):
    data: LoginData
