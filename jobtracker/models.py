"""Data models for job application tracking."""

from enum import Enum
from typing import Any, NamedTuple, Optional, assert_never

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .dates import today_text


class Attachment(NamedTuple):
    """A file name and its inline data URL."""

    file_name: str
    data_url: str


class JobStatus(str, Enum):
    """Where an application currently stands."""

    WAITING = "Waiting"
    INTERVIEWING = "Interviewing"
    OFFERED = "Offered"
    DECLINED = "Declined"


def status_style(status: JobStatus) -> str:
    """Return the display style token for a status badge."""
    match status:
        case JobStatus.WAITING:
            return "blue"
        case JobStatus.INTERVIEWING:
            return "orange"
        case JobStatus.OFFERED:
            return "green"
        case JobStatus.DECLINED:
            return "red"
        case _:
            assert_never(status)


class JobApplicationFormData(BaseModel):
    """Everything the user enters for an application, without its id."""

    model_config = ConfigDict(populate_by_name=True)

    company: str
    role: str
    date_applied: str = Field(default_factory=today_text, alias="dateApplied")
    status: JobStatus = JobStatus.WAITING
    job_link: str = Field(default="", alias="jobLink")
    cv_file_name: Optional[str] = Field(default=None, alias="cvFileName")
    cv_base64: Optional[str] = Field(default=None, alias="cvBase64")
    notes: str = ""

    @field_validator("company", "role", "date_applied")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("field is required")
        return value

    @field_validator("job_link", "notes", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def _attachment_pair(self) -> "JobApplicationFormData":
        if (self.cv_file_name is None) != (self.cv_base64 is None):
            raise ValueError("cvFileName and cvBase64 must be set or cleared together")
        return self

    @property
    def has_attachment(self) -> bool:
        return self.cv_base64 is not None

    def with_attachment(self, attachment: Attachment) -> "JobApplicationFormData":
        """Return a copy carrying the given inline attachment."""
        return self.model_copy(
            update={"cv_file_name": attachment.file_name, "cv_base64": attachment.data_url}
        )

    def without_attachment(self) -> "JobApplicationFormData":
        """Return a copy with the attachment removed."""
        return self.model_copy(update={"cv_file_name": None, "cv_base64": None})

    def form_fields(self) -> dict[str, Any]:
        """Form values keyed by attribute name, excluding any id."""
        return self.model_dump(exclude={"id"})


class JobApplication(JobApplicationFormData):
    """A stored job application."""

    id: str = Field(min_length=1)

    def to_document(self) -> dict[str, Optional[str]]:
        """Convert to the persisted document layout."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "JobApplication":
        """Parse a persisted document."""
        return cls.model_validate(data)

    @classmethod
    def from_form(cls, app_id: str, form: JobApplicationFormData) -> "JobApplication":
        return cls(id=app_id, **form.form_fields())
