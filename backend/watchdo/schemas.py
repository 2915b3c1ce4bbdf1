from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, field_validator


class LoginRequest(BaseModel):
    email: str
    name: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class LoginResponse(BaseModel):
    token: str
    expires_at: str
    user_id: int


class UserRead(BaseModel):
    id: int
    email: str
    name: str

    class Config:
        from_attributes = True


class VideoUrlBody(BaseModel):
    youtube_url: str


class VideoRead(BaseModel):
    id: int
    youtube_video_id: str
    youtube_url: str
    title: str | None = None
    channel_name: str | None = None
    channel_id: str | None = None
    channel_thumbnail_url: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class VideoDetail(VideoRead):
    thumbnail_url: str | None = None
    embed_url: str | None = None
    channel_url: str | None = None
    action_count_rank: int | None = None
    cheer_count: int = 0


class VideoSummary(VideoRead):
    thumbnail_url: str | None = None


class CatalogSearchResult(BaseModel):
    id: int
    title: str | None = None
    channel_name: str | None = None
    thumbnail_url: str | None = None
    entry_count: int


class AutocompleteResponse(BaseModel):
    suggestions: list[str]


class RankedVideo(BaseModel):
    video: VideoRead
    action_count: int
    thumbnail_url: str | None = None


class ChannelRead(BaseModel):
    channel_name: str
    channel_id: str | None = None
    thumbnail_url: str | None = None
    post_count: int
    action_count: int
    youtube_url: str


class SearchResult(BaseModel):
    video_id: str
    title: str | None = None
    channel_name: str | None = None
    thumbnail_url: str | None = None
    youtube_url: str


class SuggestRequest(BaseModel):
    video_id: str
    title: str | None = None


class SuggestResponse(BaseModel):
    action_plans: list[str]


class ConvertTitleRequest(BaseModel):
    action_plan: str


class ConvertTitleResponse(BaseModel):
    title: str


class ToggleResponse(BaseModel):
    active: bool
    count: int


class EntryCreate(BaseModel):
    youtube_url: str | None = None
    video_id: int | None = None
    content: str
    deadline: date | None = None
    thumbnail_key: str | None = None


class EntryUpdate(BaseModel):
    content: str | None = None
    deadline: date | None = None
    thumbnail_key: str | None = None  # "CLEAR" removes the custom thumbnail
    new_video_url: str | None = None


class AchieveRequest(BaseModel):
    reflection: str | None = None
    result_image_key: str | None = None


class ReflectionUpdate(BaseModel):
    reflection: str | None = None
    result_image_key: str | None = None


class EntryRead(BaseModel):
    id: int
    video_id: int
    user_id: int
    content: str
    deadline: date | None = None
    achieved: bool
    achieved_at: datetime | None = None
    reflection: str | None = None
    days_remaining: int | None = None
    deadline_status: str
    thumbnail_url: str | None = None
    result_image_url: str | None = None
    display_thumbnail_url: str | None = None
    liked: bool = False
    like_count: int = 0
    created_at: datetime


class AchievementRead(BaseModel):
    id: int
    content: str
    reflection: str | None = None
    achieved_at: datetime | None = None
    result_image_url: str | None = None
    fallback_thumbnail_url: str
    video: VideoRead
    user: UserRead
    can_edit: bool


class PresignRequest(BaseModel):
    content_type: str


class PresignResponse(BaseModel):
    upload_url: str
    key: str
    content_type: str
    expires_in: int


class DashboardRead(BaseModel):
    current: EntryRead | None = None
    today: list[EntryRead]
    overdue: list[EntryRead]
    upcoming: list[EntryRead]
    completed: list[EntryRead]
    total_entries: int
    streak: int
    activity: dict[date, int]
