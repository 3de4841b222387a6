"""Content data models — recipes, packaging ideas and their moderation envelope."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    computed_field,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from src.errors import ValidationError


class ContentKind(str, Enum):
    RECIPE = "recipe"
    PACKAGING_IDEA = "packaging_idea"


class ContentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _clean_entries(value: Any) -> Any:
    """Trim string entries and drop blank ones; leave anything else to pydantic."""
    if not isinstance(value, list):
        return value
    cleaned = []
    for entry in value:
        if isinstance(entry, str):
            entry = entry.strip()
            if not entry:
                continue
        cleaned.append(entry)
    return cleaned


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class _PayloadBase(BaseModel):
    """Editable fields shared by every content kind."""

    title: str = Field(..., max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    steps: list[str]
    image_url: Optional[str] = Field(None, max_length=2000)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("title")
    @classmethod
    def _title_length(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Title must be at least 3 characters")
        return v

    @field_validator("description", "image_url", mode="before")
    @classmethod
    def _optional_text(cls, v):
        return _blank_to_none(v)

    @field_validator("steps", mode="before")
    @classmethod
    def _clean_steps(cls, v):
        return _clean_entries(v)

    @field_validator("steps")
    @classmethod
    def _need_a_step(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one step is required")
        return v


class RecipePayload(_PayloadBase):
    kind: Literal["recipe"] = "recipe"
    ingredients: list[str]
    prep_time: Optional[int] = Field(None, ge=0, description="Minutes")
    cook_time: Optional[int] = Field(None, ge=0, description="Minutes")
    servings: Optional[int] = Field(None, ge=1)
    tags: list[str] = []

    @field_validator("ingredients", "tags", mode="before")
    @classmethod
    def _clean_lists(cls, v):
        return _clean_entries(v)

    @field_validator("ingredients")
    @classmethod
    def _need_an_ingredient(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one ingredient is required")
        return v

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, v: list[str]) -> list[str]:
        # Set-like, first spelling wins
        return list(dict.fromkeys(v))

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "title": "Tomato Soup",
                    "description": "Weeknight soup from pantry staples",
                    "ingredients": ["4 tomatoes", "1 onion", "500ml stock"],
                    "steps": ["Chop", "Simmer 20 minutes", "Blend"],
                    "prep_time": 10,
                    "cook_time": 25,
                    "servings": 4,
                    "tags": ["vegetarian", "soup"],
                }
            ]
        }
    )


class PackagingIdeaPayload(_PayloadBase):
    kind: Literal["packaging_idea"] = "packaging_idea"
    materials: list[str]

    @field_validator("materials", mode="before")
    @classmethod
    def _clean_materials(cls, v):
        return _clean_entries(v)

    @field_validator("materials")
    @classmethod
    def _need_a_material(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one material is required")
        return v


ContentPayload = Annotated[
    Union[RecipePayload, PackagingIdeaPayload],
    Field(discriminator="kind"),
]

_payload_adapter: TypeAdapter = TypeAdapter(ContentPayload)


def field_errors(exc: PydanticValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into ``{field, message}`` pairs."""
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("recipe", "packaging_idea")]
        message = err["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({"field": ".".join(loc) or "payload", "message": message})
    return details


def parse_payload(data: dict[str, Any], kind: ContentKind | None = None):
    """Validate a raw dict into the payload model for its kind.

    Raises the domain ``ValidationError`` instead of pydantic's.
    """
    data = dict(data)
    if kind is not None:
        data["kind"] = kind.value
    try:
        return _payload_adapter.validate_python(data)
    except PydanticValidationError as exc:
        raise ValidationError(field_errors(exc)) from exc


class AuthorSummary(BaseModel):
    id: str
    username: str
    avatar_url: Optional[str] = None


class ContentItem(BaseModel):
    """A stored recipe or packaging idea with its moderation envelope."""

    id: str
    author_id: str
    status: ContentStatus
    moderator_notes: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    payload: ContentPayload
    author: Optional[AuthorSummary] = None

    @computed_field
    @property
    def kind(self) -> ContentKind:
        return ContentKind(self.payload.kind)
