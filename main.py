import logging
import os

from bson.errors import InvalidId
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from database import serialize_document, to_object_id
from exceptions import ActionError, DatabaseUnavailableError, ThreadNotFoundError
from schemas import CommentCreate, SortOrder, ThreadCreate, UserUpdate
from thread_actions import add_comment_to_thread, create_thread, fetch_thread_by_id, fetch_threads
from user_actions import fetch_user, fetch_user_posts, fetch_users, get_activities, update_user

# database has already loaded .env, so LOG_LEVEL may come from there
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _parse_id(value: str):
    try:
        return to_object_id(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid document ID format")


@app.get("/")
def read_root():
    return {"message": "Hello from the Threads API!"}


@app.get("/api/health")
def health():
    """Check if the database is configured and reachable"""
    response = {
        "backend": "ok",
        "database": "not available",
        "database_url": "set" if os.getenv("DATABASE_URL") else "not set",
        "database_name": "set" if os.getenv("DATABASE_NAME") else "not set",
        "collections": [],
    }

    try:
        from database import list_collections

        response["collections"] = list_collections()
        response["database"] = "connected"
    except DatabaseUnavailableError as e:
        response["database"] = f"not available: {e}"
    except Exception as e:
        logger.warning("Health check could not reach the database: %s", e)
        response["database"] = f"error: {str(e)[:50]}"

    return response


# ============================================================================
# THREAD ENDPOINTS
# ============================================================================

@app.post("/api/threads")
def post_thread(payload: ThreadCreate):
    """Create a top-level thread"""
    author_id = _parse_id(payload.author)
    try:
        thread_id = create_thread(payload.text, author_id)
        return {"ok": True, "id": thread_id}
    except ActionError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/threads")
def list_threads(
    page_number: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
):
    """
    Paginated feed of top-level threads, newest first
    Query params:
    - page_number: 1-based page (default 1)
    - page_size: threads per page (default 20, max 100)
    """
    page_size = min(page_size, MAX_PAGE_SIZE)
    try:
        result = fetch_threads(page_number, page_size)
        return {
            "ok": True,
            "posts": serialize_document(result["posts"]),
            "is_next": result["is_next"],
        }
    except ActionError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/threads/{thread_id}")
def get_thread(thread_id: str):
    """A thread with its replies and replies-to-replies"""
    obj_id = _parse_id(thread_id)
    try:
        thread = fetch_thread_by_id(obj_id)
    except ActionError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if thread is None:
        raise HTTPException(status_code=404, detail="Thread not found")

    return {"ok": True, "thread": serialize_document(thread)}


@app.post("/api/threads/{thread_id}/comments")
def post_comment(thread_id: str, payload: CommentCreate):
    """Reply to a thread"""
    obj_id = _parse_id(thread_id)
    user_id = _parse_id(payload.user_id)
    try:
        comment_id = add_comment_to_thread(obj_id, payload.text, user_id)
        return {"ok": True, "id": comment_id}
    except ThreadNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ActionError as e:
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# USER ENDPOINTS
# ============================================================================

@app.get("/api/users")
def search_users(
    user_id: str,
    search_string: str = "",
    page_number: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    sort_by: SortOrder = "desc",
):
    """
    Search users other than the caller
    Query params:
    - user_id: external id of the caller, excluded from results
    - search_string: case-insensitive match on username or name
    - page_number, page_size: pagination (page_size max 100)
    - sort_by: "asc" or "desc" by join date
    """
    page_size = min(page_size, MAX_PAGE_SIZE)
    try:
        result = fetch_users(
            user_id,
            search_string=search_string,
            page_number=page_number,
            page_size=page_size,
            sort_by=sort_by,
        )
        return {
            "ok": True,
            "users": serialize_document(result["users"]),
            "is_next": result["is_next"],
        }
    except ActionError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/users/{user_id}")
def get_user(user_id: str):
    try:
        user = fetch_user(user_id)
    except ActionError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    return {"ok": True, "user": serialize_document(user)}


@app.put("/api/users/{user_id}")
def put_user(user_id: str, payload: UserUpdate):
    """Onboard a user or edit their profile"""
    try:
        update_user(user_id, payload.username, payload.name, payload.bio, payload.image)
        return {"ok": True, "message": f"User {user_id} updated"}
    except ActionError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/users/{user_id}/threads")
def get_user_threads(user_id: str):
    """A user's profile with their threads and the replies to them"""
    try:
        user = fetch_user_posts(user_id)
    except ActionError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    return {"ok": True, "user": serialize_document(user)}


@app.get("/api/users/{user_id}/activity")
def get_user_activity(user_id: str):
    """Replies other users left on this user's threads"""
    try:
        user = fetch_user(user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        if not user.get("onboarded"):
            raise HTTPException(status_code=403, detail="User has not completed onboarding")

        activities = get_activities(user["_id"])
        return {"ok": True, "activities": serialize_document(activities)}
    except HTTPException:
        raise
    except ActionError as e:
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
