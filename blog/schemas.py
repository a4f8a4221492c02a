from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Request bodies strip surrounding whitespace, so "   " fails min_length=1.
_request_config = ConfigDict(str_strip_whitespace=True)


# --- User ---

class UserCreate(BaseModel):
    model_config = _request_config

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UserArticle(BaseModel):
    id: int
    title: str


class UserDetail(UserResponse):
    articles: list[UserArticle] = []


# --- Article ---

class ArticleCreate(BaseModel):
    model_config = _request_config

    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    author_id: int
    image_path: str | None = Field(None, max_length=255)


class ArticleUpdate(BaseModel):
    """Partial update: absent fields are left untouched, present ones must be non-empty."""

    model_config = _request_config

    title: str | None = Field(None, min_length=1, max_length=255)
    content: str | None = Field(None, min_length=1)

    @field_validator("title", "content")
    @classmethod
    def _not_null(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("may not be null when present")
        return value


class ArticleSummary(BaseModel):
    id: int
    title: str
    content: str
    author: str | None
    comments_count: int
    published_at: datetime | None
    created_at: datetime


class ArticleRecord(BaseModel):
    id: int
    title: str
    content: str
    author_id: int
    author: str | None = None
    image_path: str | None
    published_at: datetime | None
    created_at: datetime
    updated_at: datetime | None


class CommentInArticle(BaseModel):
    id: int
    content: str
    user: str | None
    created_at: datetime


class ArticleDetail(BaseModel):
    id: int
    title: str
    content: str
    author: str | None
    author_id: int
    image_path: str | None
    published_at: datetime | None
    created_at: datetime
    comments: list[CommentInArticle] = []


class MessageResponse(BaseModel):
    message: str


# --- Comment ---

class CommentCreate(BaseModel):
    model_config = _request_config

    article_id: int
    user_id: int
    content: str = Field(min_length=1)


class CommentUpdate(BaseModel):
    model_config = _request_config

    content: str = Field(min_length=1)


class CommentResponse(BaseModel):
    id: int
    article_id: int
    user_id: int
    user: str | None = None
    content: str
    created_at: datetime
    updated_at: datetime | None = None


class CommentDeleted(MessageResponse):
    remaining_count: int
    first_remaining: CommentResponse | None


# --- Images ---

class ImageVariant(BaseModel):
    filename: str
    size: int
    width: int | None = None
    height: int | None = None


class ImageVariants(BaseModel):
    large: ImageVariant
    medium: ImageVariant
    thumbnail: ImageVariant
    webp: ImageVariant


class ImageUploadResponse(MessageResponse):
    original_size: int
    optimized_size: int
    reduction_percent: float
    images: ImageVariants
    url: str


# --- Stats ---

class StatsResponse(BaseModel):
    total_articles: int
    total_comments: int
    total_users: int
    avg_comments_per_article: float
    cache_info: dict = {}
