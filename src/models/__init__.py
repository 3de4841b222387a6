from src.models.content import (
    AuthorSummary,
    ContentItem,
    ContentKind,
    ContentPayload,
    ContentStatus,
    PackagingIdeaPayload,
    RecipePayload,
    parse_payload,
)
from src.models.identity import Identity, Role
from src.models.profile import Profile, ProfileUpdate, UserWithRole
from src.models.report import Report, ReportReason, ReportRequest, ReportStatus, ReportedContent

__all__ = [
    "AuthorSummary",
    "ContentItem",
    "ContentKind",
    "ContentPayload",
    "ContentStatus",
    "Identity",
    "PackagingIdeaPayload",
    "Profile",
    "ProfileUpdate",
    "RecipePayload",
    "Report",
    "ReportReason",
    "ReportRequest",
    "ReportStatus",
    "ReportedContent",
    "Role",
    "UserWithRole",
    "parse_payload",
]
