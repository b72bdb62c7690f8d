from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.middleware.base import BaseHTTPMiddleware

from config import (ALLOWED_HOSTS, ALLOWED_ORIGINS, GZIP_MIN_SIZE, HTTP_INTERNAL_SERVER_ERROR,
                    HTTP_REQUEST_ENTITY_TOO_LARGE, MAX_REQUEST_SIZE_MB, SECRET_KEY, ForumConfig)
from exceptions import ForumError, to_http_exception
from forum import ForumService
from models import (CategoryCreate, CategoryOverviewResponse, CategoryResponse, CrumbResponse, ErrorResponse,
                    ForumCreate, ForumPageResponse, ForumResponse, PageResponse, PostResponse, ReplyCreate,
                    ReplyResponse, SearchResponse, ThreadCloseUpdate, ThreadCreate, ThreadEdit, ThreadMove,
                    ThreadPageResponse, ThreadResponse, ThreadStickyUpdate)
from posts import Reply
from search import Post, RecentPostFilters
from security import SecurityManager
from users import Actor, anonymous
from utils import timestamp


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and int(content_length) > MAX_REQUEST_SIZE_MB * 1024 * 1024:
            return JSONResponse(
                status_code=HTTP_REQUEST_ENTITY_TOO_LARGE,
                content={"message": "Request entity too large"}
            )

        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/"):
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return response


def post_response(post: Post) -> PostResponse:
    if isinstance(post, Reply):
        return PostResponse(kind="reply", post_id=post.reply_id, thread_id=post.thread_id,
                            posted_at=post.posted_at, actor_id=post.actor_id, text=post.body)
    return PostResponse(kind="thread", post_id=post.thread_id, thread_id=post.thread_id,
                        posted_at=post.posted_at, actor_id=post.actor_id, text=post.title)


def create_app(service: Optional[ForumService] = None,
               security_manager: Optional[SecurityManager] = None,
               allowed_hosts: Optional[List[str]] = None) -> FastAPI:
    forum = service or ForumService(ForumConfig())
    tokens = security_manager or SecurityManager(secret_key=SECRET_KEY)
    security = HTTPBearer(auto_error=False)

    app = FastAPI(title="Forum API", description="Forum hierarchy with denormalized counters", version="1.0.0")
    app.state.forum = forum

    app.add_middleware(GZipMiddleware, minimum_size=GZIP_MIN_SIZE)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"]
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts or ALLOWED_HOSTS)

    async def get_client_ip(request: Request) -> str:
        return request.client.host if request.client else "[unknown]"

    async def get_actor(request: Request,
                        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Actor:
        client_ip = await get_client_ip(request)
        if credentials is None:
            return anonymous(client_ip)
        return tokens.actor_from_token(credentials.credentials, client_ip)

    @app.on_event("startup")
    async def startup_event():
        await forum.initialize()

    @app.exception_handler(ForumError)
    async def forum_error_handler(request: Request, exc: ForumError):
        http_exc = to_http_exception(exc)
        return JSONResponse(
            status_code=http_exc.status_code,
            content=ErrorResponse(error=exc.__class__.__name__, message=str(http_exc.detail)).model_dump()
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.__class__.__name__, message=str(exc.detail)).model_dump()
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        return JSONResponse(
            status_code=HTTP_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="InternalServerError", message="An unexpected error occurred").model_dump()
        )

    @app.get("/api/overview", response_model=List[CategoryOverviewResponse])
    async def get_overview():
        return [
            CategoryOverviewResponse(
                category=CategoryResponse.model_validate(entry.category),
                forums=[ForumResponse.model_validate(f) for f in entry.forums],
            )
            for entry in await forum.overview()
        ]

    @app.post("/api/categories", response_model=CategoryResponse)
    async def create_category(data: CategoryCreate, actor: Actor = Depends(get_actor)):
        category = await forum.add_category(actor, data.name, data.sortkey)
        return CategoryResponse.model_validate(category)

    @app.post("/api/categories/{category_id}/forums", response_model=ForumResponse)
    async def create_forum(category_id: int, data: ForumCreate, actor: Actor = Depends(get_actor)):
        created = await forum.add_forum(actor, category_id, data.name, data.description,
                                        data.sortkey, data.announcement)
        return ForumResponse.model_validate(created)

    @app.get("/api/forums/{forum_id}", response_model=ForumPageResponse)
    async def get_forum(forum_id: int, page: Optional[str] = None):
        forum_page = await forum.show_forum(forum_id, page)
        return ForumPageResponse(
            forum=ForumResponse.model_validate(forum_page.forum),
            threads=[ThreadResponse.model_validate(t) for t in forum_page.threads],
            page=PageResponse.model_validate(forum_page.window),
            breadcrumbs=[CrumbResponse.model_validate(c) for c in forum_page.breadcrumbs],
        )

    @app.post("/api/forums/{forum_id}/recount", response_model=ForumResponse)
    async def recount_forum(forum_id: int, actor: Actor = Depends(get_actor)):
        return ForumResponse.model_validate(await forum.recount_forum(actor, forum_id))

    @app.post("/api/forums/{forum_id}/threads", response_model=ThreadResponse)
    async def create_thread(forum_id: int, data: ThreadCreate, actor: Actor = Depends(get_actor)):
        thread = await forum.create_thread(actor, forum_id, data.title, data.content)
        return ThreadResponse.model_validate(thread)

    def thread_page_response(thread_page) -> ThreadPageResponse:
        return ThreadPageResponse(
            thread=ThreadResponse.model_validate(thread_page.thread),
            replies=[ReplyResponse.model_validate(r) for r in thread_page.replies],
            page=PageResponse.model_validate(thread_page.window),
            breadcrumbs=[CrumbResponse.model_validate(c) for c in thread_page.breadcrumbs],
        )

    @app.get("/api/threads/by-title/{title}", response_model=ThreadPageResponse)
    async def get_thread_by_title(title: str, page: Optional[str] = None):
        return thread_page_response(await forum.show_thread_by_title(title, page))

    @app.get("/api/threads/{thread_id}", response_model=ThreadPageResponse)
    async def get_thread(thread_id: int, page: Optional[str] = None):
        return thread_page_response(await forum.show_thread(thread_id, page))

    @app.put("/api/threads/{thread_id}", response_model=ThreadResponse)
    async def edit_thread(thread_id: int, data: ThreadEdit, actor: Actor = Depends(get_actor)):
        thread = await forum.edit_thread(actor, thread_id, data.title, data.content)
        return ThreadResponse.model_validate(thread)

    @app.delete("/api/threads/{thread_id}")
    async def delete_thread(thread_id: int, actor: Actor = Depends(get_actor)):
        await forum.delete_thread(actor, thread_id)
        return {"message": "Thread deleted successfully"}

    @app.patch("/api/threads/{thread_id}/close", response_model=ThreadResponse)
    async def toggle_thread_closed(thread_id: int, data: ThreadCloseUpdate, actor: Actor = Depends(get_actor)):
        if data.closed:
            thread = await forum.close_thread(actor, thread_id)
        else:
            thread = await forum.reopen_thread(actor, thread_id)
        return ThreadResponse.model_validate(thread)

    @app.patch("/api/threads/{thread_id}/sticky", response_model=ThreadResponse)
    async def toggle_thread_sticky(thread_id: int, data: ThreadStickyUpdate, actor: Actor = Depends(get_actor)):
        return ThreadResponse.model_validate(await forum.set_sticky(actor, thread_id, data.sticky))

    @app.post("/api/threads/{thread_id}/move", response_model=ThreadResponse)
    async def move_thread(thread_id: int, data: ThreadMove, actor: Actor = Depends(get_actor)):
        return ThreadResponse.model_validate(await forum.move_thread(actor, thread_id, data.forum_id, data.title))

    @app.post("/api/threads/{thread_id}/replies", response_model=ReplyResponse)
    async def create_reply(thread_id: int, data: ReplyCreate, actor: Actor = Depends(get_actor)):
        return ReplyResponse.model_validate(await forum.create_reply(actor, thread_id, data.content))

    @app.patch("/api/replies/{reply_id}", response_model=ReplyResponse)
    async def edit_reply(reply_id: int, data: ReplyCreate, actor: Actor = Depends(get_actor)):
        return ReplyResponse.model_validate(await forum.edit_reply(actor, reply_id, data.content))

    @app.delete("/api/replies/{reply_id}")
    async def delete_reply(reply_id: int, actor: Actor = Depends(get_actor)):
        await forum.delete_reply(actor, reply_id)
        return {"message": "Reply deleted successfully"}

    @app.get("/api/recent", response_model=List[PostResponse])
    async def get_recent_posts(limit: int = Query(forum.config.recent_posts_limit, ge=1, le=100),
                               category_id: List[int] = Query(default=[]),
                               category: List[str] = Query(default=[]),
                               forum_id: List[int] = Query(default=[])):
        filters = RecentPostFilters(limit=limit, category_ids=category_id,
                                    category_names=category, forum_ids=forum_id)
        return [post_response(post) for post in await forum.recent_posts(filters)]

    @app.get("/api/search", response_model=SearchResponse)
    async def search_forum(q: str):
        results = await forum.search(q)
        return SearchResponse(
            query=results.query,
            hits=results.hits,
            threads=[ThreadResponse.model_validate(t) for t in results.threads],
            replies=[ReplyResponse.model_validate(r) for r in results.replies],
        )

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "timestamp": timestamp()}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app)
