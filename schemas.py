"""
Database Schemas

Each Pydantic model maps to a MongoDB collection with the lowercase class name.
- User -> "user"
- Thread -> "thread"

References between documents are stored as ObjectIds and resolved with
database.populate. The *Create / *Update models validate request bodies.
"""

from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

USER_COLLECTION = "user"
THREAD_COLLECTION = "thread"

SortOrder = Literal["asc", "desc"]


class User(BaseModel):
    """
    Profile of a user known to the external identity provider
    Collection: "user"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(..., description="External identity id")
    username: str = Field(..., description="Lower-cased handle")
    name: str = Field(..., description="Display name")
    bio: Optional[str] = Field(None, description="Profile bio")
    image: Optional[str] = Field(None, description="Profile image URL")
    onboarded: bool = Field(False, description="Completed onboarding")
    threads: List[ObjectId] = Field(default_factory=list, description="Authored top-level threads")


class Thread(BaseModel):
    """
    A post, or a reply when parent_id is set
    Collection: "thread"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    text: str = Field(..., min_length=1, description="Thread body")
    author: ObjectId = Field(..., description="Author user _id")
    parent_id: Optional[ObjectId] = Field(None, description="Parent thread _id for replies")
    children: List[ObjectId] = Field(default_factory=list, description="Reply thread ids")


class ThreadCreate(BaseModel):
    text: str = Field(..., min_length=1)
    author: str = Field(..., description="Author user _id")


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1)
    user_id: str = Field(..., description="Commenter user _id")


class UserUpdate(BaseModel):
    username: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    bio: Optional[str] = None
    image: Optional[str] = None
