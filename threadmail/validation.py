"""Request validation models for the web layer."""

from __future__ import annotations

import re
from typing import Any, Dict, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from threadmail import errors
from threadmail.models import ListOptions

EMAIL_RE = re.compile(r"^[^@\s,<>]+@[^@\s,<>]+\.[^@\s,<>]+$")

M = TypeVar("M", bound=BaseModel)


def _check_address(value: str) -> str:
    value = value.strip()
    if not EMAIL_RE.match(value):
        raise ValueError("Invalid email address")
    return value


def _check_address_list(value: Optional[str]) -> Optional[str]:
    """Validate a comma-separated address list; empty means none."""
    if not value:
        return value
    for part in value.split(","):
        _check_address(part)
    return value


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ListQuery(_Model):
    """Query parameters of GET /api/emails."""
    search: Optional[str] = Field(default=None, max_length=200)
    filter: Optional[Literal["inbox", "sent", "important", "trash"]] = None
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    thread_only: bool = Field(default=False, alias="threadOnly")
    page: Optional[int] = None
    page_size: Optional[int] = Field(default=None, alias="pageSize")

    @field_validator("thread_only", mode="before")
    @classmethod
    def _parse_thread_only(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value == "true"
        return bool(value)

    def to_options(self, default_page_size: Optional[int] = None) -> ListOptions:
        """Build service ListOptions; default_page_size applies when pageSize is absent."""
        return ListOptions(
            search=self.search,
            filter=self.filter,
            thread_id=self.thread_id,
            thread_only=self.thread_only,
            page=self.page,
            page_size=self.page_size if self.page_size is not None else default_page_size,
        )


class CreateMessageInput(_Model):
    """Body of POST /api/emails."""
    to: str
    cc: Optional[str] = None
    bcc: Optional[str] = None
    subject: str = Field(min_length=1, max_length=500)
    content: Optional[str] = Field(default=None, max_length=50000)
    thread_id: Optional[str] = Field(default=None, alias="threadId")

    @field_validator("to")
    @classmethod
    def _validate_to(cls, value: str) -> str:
        return _check_address(value)

    @field_validator("cc", "bcc")
    @classmethod
    def _validate_copies(cls, value: Optional[str]) -> Optional[str]:
        return _check_address_list(value)


class UpdateMessageInput(_Model):
    """Body of PATCH /api/emails/<id>."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", strict=True)

    is_read: Optional[bool] = Field(default=None, alias="isRead")
    is_important: Optional[bool] = Field(default=None, alias="isImportant")


class RestoreThreadInput(_Model):
    """Body of PATCH /api/emails/thread/<thread_id>."""
    restore: Literal[True]


class DeleteThreadQuery(_Model):
    permanent: Literal["true", "false"] = "false"

    @property
    def is_permanent(self) -> bool:
        return self.permanent == "true"


def _format_errors(error: ValidationError) -> Dict[str, list]:
    """Group validation messages by field path."""
    details: Dict[str, list] = {}
    for issue in error.errors():
        path = ".".join(str(p) for p in issue["loc"]) or "_root"
        details.setdefault(path, []).append(issue["msg"])
    return details


def validate(model: Type[M], data: Any, message: str = "Validation failed") -> M:
    """Validate data against a model.

    Raises:
        ServiceError: VALIDATION_ERROR with per-field details
    """
    if not isinstance(data, dict):
        raise errors.validation(message, {"_root": ["Expected an object"]})
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise errors.validation(message, _format_errors(e)) from e
