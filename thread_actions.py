"""
Thread actions: posting, the paginated feed, thread detail and replies.
"""

import logging
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from pymongo import DESCENDING

from database import create_document, get_collection, populate, to_object_id
from exceptions import ActionError, ThreadNotFoundError
from schemas import THREAD_COLLECTION, USER_COLLECTION, Thread

logger = logging.getLogger(__name__)

TOP_LEVEL_FILTER = {"parent_id": None}


def create_thread(text: str, author: Union[str, ObjectId]) -> str:
    """Create a top-level thread and record it on the author's profile.

    Returns:
        str: The new thread's ID
    """
    try:
        author_id = to_object_id(author)
        thread_id = create_document(THREAD_COLLECTION, Thread(text=text, author=author_id))

        get_collection(USER_COLLECTION).update_one(
            {"_id": author_id},
            {"$push": {"threads": ObjectId(thread_id)}},
        )
        logger.info("Thread %s created by %s", thread_id, author_id)
        return thread_id
    except Exception as e:
        logger.exception("Thread creation failed for author %s", author)
        raise ActionError("create thread", str(e)) from e


def fetch_threads(page_number: int = 1, page_size: int = 20) -> Dict[str, Any]:
    """One page of top-level threads, newest first.

    Returns ``{"posts": [...], "is_next": bool}``.
    """
    try:
        if page_number < 1 or page_size < 1:
            raise ValueError("page_number and page_size must be positive")

        skip_amount = page_size * (page_number - 1)
        threads = get_collection(THREAD_COLLECTION)

        posts = list(
            threads.find(TOP_LEVEL_FILTER)
            .sort("created_at", DESCENDING)
            .skip(skip_amount)
            .limit(page_size)
        )
        populate(posts, "author", USER_COLLECTION)

        populate(posts, "children", THREAD_COLLECTION)
        children = [child for post in posts for child in post.get("children", [])]
        populate(children, "author", USER_COLLECTION, select=["_id", "name", "image"])

        total_posts_count = threads.count_documents(TOP_LEVEL_FILTER)
        is_next = total_posts_count > skip_amount + len(posts)

        return {"posts": posts, "is_next": is_next}
    except Exception as e:
        logger.exception("Fetching threads failed (page %s)", page_number)
        raise ActionError("fetch threads", str(e)) from e


def fetch_thread_by_id(thread_id: Union[str, ObjectId]) -> Optional[dict]:
    """A thread with its author, replies and replies-to-replies populated.

    Returns None when the thread does not exist.
    """
    author_fields = ["_id", "id", "name", "image"]
    try:
        thread = get_collection(THREAD_COLLECTION).find_one({"_id": to_object_id(thread_id)})
        if thread is None:
            return None

        populate(thread, "author", USER_COLLECTION, select=author_fields)

        populate(thread, "children", THREAD_COLLECTION)
        children = thread.get("children", [])
        populate(children, "author", USER_COLLECTION, select=author_fields)

        populate(children, "children", THREAD_COLLECTION)
        grandchildren = [nested for child in children for nested in child.get("children", [])]
        populate(grandchildren, "author", USER_COLLECTION, select=author_fields)

        return thread
    except Exception as e:
        logger.exception("Fetching thread %s failed", thread_id)
        raise ActionError("fetch thread", str(e)) from e


def add_comment_to_thread(
    thread_id: Union[str, ObjectId],
    comment_text: str,
    user_id: Union[str, ObjectId],
) -> str:
    """Reply to a thread.

    Raises:
        ThreadNotFoundError: the parent thread does not exist.

    Returns:
        str: The reply's ID
    """
    try:
        parent_id = to_object_id(thread_id)
        threads = get_collection(THREAD_COLLECTION)

        original_thread = threads.find_one({"_id": parent_id}, {"_id": 1})
        if original_thread is None:
            raise ThreadNotFoundError(str(thread_id))

        comment = Thread(text=comment_text, author=to_object_id(user_id), parent_id=parent_id)
        comment_id = create_document(THREAD_COLLECTION, comment)

        threads.update_one({"_id": parent_id}, {"$push": {"children": ObjectId(comment_id)}})
        logger.info("Reply %s added to thread %s", comment_id, parent_id)
        return comment_id
    except ThreadNotFoundError:
        raise
    except Exception as e:
        logger.exception("Adding reply to thread %s failed", thread_id)
        raise ActionError("add comment to thread", str(e)) from e
