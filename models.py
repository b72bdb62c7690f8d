from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional, List, Literal
from config import (CATEGORY_NAME_MAX_LENGTH, FORUM_NAME_MAX_LENGTH, THREAD_TITLE_MAX_LENGTH,
                    POST_CONTENT_MAX_LENGTH)


class ThreadCreate(BaseModel):
    title: str
    content: str

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if len(v) > THREAD_TITLE_MAX_LENGTH:
            raise ValueError(f'Thread title must be at most {THREAD_TITLE_MAX_LENGTH} characters')
        return v

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if len(v) > POST_CONTENT_MAX_LENGTH:
            raise ValueError(f'Content must be at most {POST_CONTENT_MAX_LENGTH} characters')
        return v


class ThreadEdit(ThreadCreate):
    content: Optional[str] = None

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if v is not None and len(v) > POST_CONTENT_MAX_LENGTH:
            raise ValueError(f'Content must be at most {POST_CONTENT_MAX_LENGTH} characters')
        return v


class ThreadMove(BaseModel):
    forum_id: int
    title: Optional[str] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if v is not None and len(v) > THREAD_TITLE_MAX_LENGTH:
            raise ValueError(f'Thread title must be at most {THREAD_TITLE_MAX_LENGTH} characters')
        return v


class ThreadStickyUpdate(BaseModel):
    sticky: bool


class ThreadCloseUpdate(BaseModel):
    closed: bool


class ReplyCreate(BaseModel):
    content: str

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if len(v) > POST_CONTENT_MAX_LENGTH:
            raise ValueError(f'Content must be at most {POST_CONTENT_MAX_LENGTH} characters')
        return v


class CategoryCreate(BaseModel):
    name: str
    sortkey: int = 9

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if len(v) > CATEGORY_NAME_MAX_LENGTH:
            raise ValueError(f'Category name must be at most {CATEGORY_NAME_MAX_LENGTH} characters')
        return v


class ForumCreate(BaseModel):
    name: str
    description: str = ""
    sortkey: int = 9
    announcement: bool = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if len(v) > FORUM_NAME_MAX_LENGTH:
            raise ValueError(f'Forum name must be at most {FORUM_NAME_MAX_LENGTH} characters')
        return v


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category_id: int
    name: str
    sortkey: int


class ForumResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    forum_id: int
    category_id: int
    name: str
    description: str
    sortkey: int
    announcement: bool
    thread_count: int
    reply_count: int
    last_post_at: Optional[float]
    last_post_actor_id: Optional[int]
    last_thread_id: Optional[int]
    last_thread_title: Optional[str]


class ThreadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    thread_id: int
    forum_id: int
    title: str
    body: str
    posted_at: float
    actor_id: int
    edited_at: Optional[float]
    edit_actor_id: Optional[int]
    closed_at: Optional[float]
    is_closed: bool
    sticky: bool
    reply_count: int
    view_count: int
    last_post_at: Optional[float]
    last_post_actor_id: int


class ReplyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reply_id: int
    thread_id: int
    body: str
    posted_at: float
    actor_id: int
    edited_at: Optional[float]
    edit_actor_id: Optional[int]


class PostResponse(BaseModel):
    """One entry of a mixed thread/reply listing"""
    kind: Literal["thread", "reply"]
    post_id: int
    thread_id: int
    posted_at: float
    actor_id: int
    text: str


class CrumbResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: str
    key: int
    label: str


class PageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    page: int
    page_count: int
    offset: int
    limit: Optional[int]


class CategoryOverviewResponse(BaseModel):
    category: CategoryResponse
    forums: List[ForumResponse]


class ForumPageResponse(BaseModel):
    forum: ForumResponse
    threads: List[ThreadResponse]
    page: PageResponse
    breadcrumbs: List[CrumbResponse]


class ThreadPageResponse(BaseModel):
    thread: ThreadResponse
    replies: List[ReplyResponse]
    page: PageResponse
    breadcrumbs: List[CrumbResponse]


class SearchResponse(BaseModel):
    query: str
    hits: int
    threads: List[ThreadResponse]
    replies: List[ReplyResponse]


class ErrorResponse(BaseModel):
    error: str
    message: str
