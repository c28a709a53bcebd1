"""
User actions: onboarding and profile edits, user search, a user's posts and
the activity feed of replies other people left on their threads.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

from database import get_collection, populate, to_object_id, update_document
from exceptions import ActionError
from schemas import THREAD_COLLECTION, USER_COLLECTION, SortOrder

logger = logging.getLogger(__name__)


def update_user(
    user_id: str,
    username: str,
    name: str,
    bio: Optional[str] = None,
    image: Optional[str] = None,
) -> None:
    """Create or update the profile for an external user id and mark it onboarded.

    ``bio`` and ``image`` left as None keep their stored values.
    """
    fields = {"username": username.lower(), "name": name, "onboarded": True}
    if bio is not None:
        fields["bio"] = bio
    if image is not None:
        fields["image"] = image

    try:
        update_document(
            USER_COLLECTION,
            {"id": user_id},
            fields,
            upsert=True,
            insert_defaults={
                "threads": [],
                **{key: None for key in ("bio", "image") if key not in fields},
            },
        )
        logger.info("User %s updated", user_id)
    except Exception as e:
        logger.exception("Updating user %s failed", user_id)
        raise ActionError("update user", str(e)) from e


def fetch_user(user_id: str) -> Optional[dict]:
    """The user with the given external id, or None."""
    try:
        return get_collection(USER_COLLECTION).find_one({"id": user_id})
    except Exception as e:
        logger.exception("Fetching user %s failed", user_id)
        raise ActionError("fetch user", str(e)) from e


def fetch_users(
    user_id: str,
    search_string: str = "",
    page_number: int = 1,
    page_size: int = 20,
    sort_by: SortOrder = "desc",
) -> Dict[str, Any]:
    """Search users other than ``user_id`` by username or name.

    The search is a case-insensitive substring match; a blank search string
    lists everyone. Returns ``{"users": [...], "is_next": bool}``.
    """
    try:
        if page_number < 1 or page_size < 1:
            raise ValueError("page_number and page_size must be positive")

        skip_amount = (page_number - 1) * page_size

        query: Dict[str, Any] = {"id": {"$ne": user_id}}
        if search_string.strip() != "":
            pattern = {"$regex": re.escape(search_string), "$options": "i"}
            query["$or"] = [{"username": pattern}, {"name": pattern}]

        users_collection = get_collection(USER_COLLECTION)
        users = list(
            users_collection.find(query)
            .sort("created_at", DESCENDING if sort_by == "desc" else ASCENDING)
            .skip(skip_amount)
            .limit(page_size)
        )

        total_users_count = users_collection.count_documents(query)
        is_next = total_users_count > skip_amount + len(users)

        return {"users": users, "is_next": is_next}
    except Exception as e:
        logger.exception("Searching users failed")
        raise ActionError("fetch users", str(e)) from e


def fetch_user_posts(user_id: str) -> Optional[dict]:
    """The user with their threads, and each thread's replies with reply authors."""
    try:
        user = get_collection(USER_COLLECTION).find_one({"id": user_id})
        if user is None:
            return None

        populate(user, "threads", THREAD_COLLECTION)
        threads = user.get("threads", [])

        populate(threads, "children", THREAD_COLLECTION)
        replies = [reply for thread in threads for reply in thread.get("children", [])]
        populate(replies, "author", USER_COLLECTION, select=["name", "image", "id"])

        return user
    except Exception as e:
        logger.exception("Fetching posts of user %s failed", user_id)
        raise ActionError("fetch user posts", str(e)) from e


def get_activities(user_object_id: Union[str, ObjectId]) -> List[dict]:
    """Replies left by other users on threads authored by the given user, newest first.

    ``user_object_id`` is the user's database ``_id``, not the external id.
    """
    try:
        author_id = to_object_id(user_object_id)
        threads = get_collection(THREAD_COLLECTION)

        child_thread_ids = []
        for thread in threads.find({"author": author_id}, {"children": 1}):
            child_thread_ids.extend(thread.get("children", []))

        if not child_thread_ids:
            return []

        replies = list(
            threads.find({"_id": {"$in": child_thread_ids}, "author": {"$ne": author_id}})
            .sort("created_at", DESCENDING)
        )
        populate(replies, "author", USER_COLLECTION, select=["_id", "name", "image"])

        return replies
    except Exception as e:
        logger.exception("Fetching activity for user %s failed", user_object_id)
        raise ActionError("fetch user activities", str(e)) from e
