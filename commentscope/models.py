"""
Data model for Commentscope.

Two layers:
- Raw* pydantic models describe the GitHub "list issue comments" payload,
  with every optional field defaulted so downstream code never sees None.
- Record dataclasses describe what the cache stores and returns.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)


REACTION_KINDS = ("+1", "-1", "laugh", "hooray", "confused", "heart", "rocket", "eyes")


class PayloadError(ValueError):
    """A GitHub payload item doesn't match the expected comment schema."""


def empty_reactions() -> dict[str, int]:
    """Reaction map with every kind present and zeroed."""
    reactions = {"total_count": 0}
    reactions.update({kind: 0 for kind in REACTION_KINDS})
    return reactions


class RawUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str = "unknown"
    type: str = "User"

    @field_validator("login", "type", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return "unknown" if info.field_name == "login" else "User"
        return value


class RawReactions(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    total_count: int = 0
    plus_one: int = Field(default=0, alias="+1")
    minus_one: int = Field(default=0, alias="-1")
    laugh: int = 0
    hooray: int = 0
    confused: int = 0
    heart: int = 0
    rocket: int = 0
    eyes: int = 0

    @model_validator(mode="before")
    @classmethod
    def _fill_total(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("total_count") is None:
            data = dict(data)
            data["total_count"] = sum(
                int(data.get(kind) or 0) for kind in REACTION_KINDS
            )
        return data

    def as_dict(self) -> dict[str, int]:
        """GitHub-keyed reaction map, always containing every kind."""
        return {
            "total_count": self.total_count,
            "+1": self.plus_one,
            "-1": self.minus_one,
            "laugh": self.laugh,
            "hooray": self.hooray,
            "confused": self.confused,
            "heart": self.heart,
            "rocket": self.rocket,
            "eyes": self.eyes,
        }


class RawComment(BaseModel):
    """One item of GET /repos/{owner}/{repo}/issues/{number}/comments."""
    model_config = ConfigDict(extra="ignore")

    id: int
    node_id: str = ""
    body: str = ""
    user: Optional[RawUser] = None
    created_at: str = ""
    updated_at: str = ""
    reactions: RawReactions = Field(default_factory=RawReactions)
    html_url: str = ""

    @field_validator("body", "node_id", "created_at", "updated_at", "html_url", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("reactions", mode="before")
    @classmethod
    def _none_to_zero_reactions(cls, value: Any) -> Any:
        return {} if value is None else value

    @classmethod
    def from_api(cls, data: dict[str, Any] | "RawComment") -> "RawComment":
        if isinstance(data, RawComment):
            return data
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            comment_id = data.get("id") if isinstance(data, dict) else None
            raise PayloadError(
                f"Malformed comment payload (id={comment_id}): {e}"
            ) from e

    @property
    def author(self) -> str:
        return self.user.login if self.user else "unknown"

    @property
    def user_type(self) -> str | None:
        return self.user.type if self.user else None


@dataclass
class CommentRecord:
    """Normalized comment, as cached and returned to callers."""
    id: int
    author: str
    body: str
    created_at: str
    updated_at: str
    is_bot: bool = False
    reactions: dict[str, int] = field(default_factory=empty_reactions)
    reply_to: int | None = None
    node_id: str = ""
    html_url: str = ""
    issue_id: int | None = None

    @property
    def reaction_count(self) -> int:
        return int(self.reactions.get("total_count", 0))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("issue_id", None)
        return data


@dataclass
class RepoRecord:
    """Stored repository."""
    id: int
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass
class IssueRecord:
    """Stored issue or pull request."""
    id: int | None
    repo_id: int
    number: int
    type: str
    title: str
    body: str
    state: str
    author: str
    created_at: str | None
    updated_at: str | None
    closed_at: str | None
    last_fetched: str | None


@dataclass
class FetchMetadata:
    """Per-issue fetch bookkeeping."""
    issue_id: int
    last_full_fetch: str | None = None
    last_incremental_fetch: str | None = None
    total_comments: int = 0
    last_comment_date: str | None = None


METADATA_FIELDS = ("last_full_fetch", "last_incremental_fetch", "total_comments", "last_comment_date")
