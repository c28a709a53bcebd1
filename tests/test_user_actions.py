"""
tests/test_user_actions.py — Onboarding, user search, user posts, activity feed
"""

import logging

import pytest

import database
from exceptions import ActionError
from schemas import USER_COLLECTION
from user_actions import fetch_user, fetch_user_posts, fetch_users, get_activities, update_user


class TestUpdateUser:
    def test_upsert_creates_onboarded_user(self, mongo_db):
        update_user("ext_1", "JaneDoe", "Jane", bio="hi", image="jane.png")

        user = mongo_db[USER_COLLECTION].find_one({"id": "ext_1"})
        assert user["username"] == "janedoe"
        assert user["name"] == "Jane"
        assert user["onboarded"] is True
        assert user["threads"] == []
        assert "created_at" in user

    def test_update_keeps_threads(self, mongo_db, make_user, make_thread):
        user_id = make_user("ext_1", onboarded=False)
        thread_id = make_thread("post", user_id)

        update_user("ext_1", "New", "New Name")

        user = mongo_db[USER_COLLECTION].find_one({"id": "ext_1"})
        assert user["_id"] == user_id
        assert user["name"] == "New Name"
        assert user["onboarded"] is True
        assert user["threads"] == [thread_id]
        assert mongo_db[USER_COLLECTION].count_documents({}) == 1

    def test_omitted_bio_and_image_are_kept(self, mongo_db):
        update_user("ext_1", "a", "A", bio="keep", image="x.png")
        update_user("ext_1", "a", "A2")

        user = mongo_db[USER_COLLECTION].find_one({"id": "ext_1"})
        assert user["name"] == "A2"
        assert user["bio"] == "keep"
        assert user["image"] == "x.png"

    def test_new_user_without_bio_gets_empty_fields(self, mongo_db):
        update_user("ext_1", "a", "A")

        user = mongo_db[USER_COLLECTION].find_one({"id": "ext_1"})
        assert user["bio"] is None
        assert user["image"] is None


class TestFetchUser:
    def test_by_external_id(self, mongo_db, make_user):
        user_id = make_user("ext_1")
        assert fetch_user("ext_1")["_id"] == user_id

    def test_unknown(self, mongo_db):
        assert fetch_user("ghost") is None

    def test_failure_is_logged_and_wrapped(self, monkeypatch, caplog):
        monkeypatch.setattr(database, "db", None)
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("DATABASE_NAME", raising=False)

        with caplog.at_level(logging.ERROR, logger="user_actions"):
            with pytest.raises(ActionError, match="^Failed to fetch user: Database not available"):
                fetch_user("ext_1")
        assert "Fetching user ext_1 failed" in caplog.text


class TestFetchUsers:
    @pytest.fixture
    def people(self, make_user):
        make_user("me", username="me", name="Me Myself", minutes=0)
        make_user("u1", username="janedoe", name="Jane Doe", minutes=1)
        make_user("u2", username="jdoe", name="John Doe", minutes=2)
        make_user("u3", username="smith", name="Ann Smith", minutes=3)

    def test_excludes_caller(self, people):
        result = fetch_users("me")
        assert [user["id"] for user in result["users"]] == ["u3", "u2", "u1"]
        assert result["is_next"] is False

    def test_search_is_case_insensitive_on_username_and_name(self, people):
        by_name = fetch_users("me", search_string="DOE")
        assert {user["id"] for user in by_name["users"]} == {"u1", "u2"}

        by_username = fetch_users("me", search_string="Smi")
        assert [user["id"] for user in by_username["users"]] == ["u3"]

    def test_blank_search_lists_everyone(self, people):
        assert len(fetch_users("me", search_string="   ")["users"]) == 3

    def test_search_treats_input_literally(self, people, make_user):
        make_user("u4", username="dot.com", name="Dotted", minutes=4)
        result = fetch_users("me", search_string=".")
        assert [user["id"] for user in result["users"]] == ["u4"]

    def test_pagination_and_ascending_sort(self, people):
        first = fetch_users("me", page_number=1, page_size=2, sort_by="asc")
        assert [user["id"] for user in first["users"]] == ["u1", "u2"]
        assert first["is_next"] is True

        second = fetch_users("me", page_number=2, page_size=2, sort_by="asc")
        assert [user["id"] for user in second["users"]] == ["u3"]
        assert second["is_next"] is False

    def test_invalid_page(self, mongo_db):
        with pytest.raises(ActionError, match="^Failed to fetch users"):
            fetch_users("me", page_size=0)


class TestFetchUserPosts:
    def test_threads_with_reply_authors(self, make_user, make_thread):
        alice = make_user("alice")
        bob = make_user("bob", name="Bob")
        post = make_thread("post", alice)
        make_thread("reply", bob, parent_id=post, minutes=1)

        user = fetch_user_posts("alice")
        (thread,) = user["threads"]
        assert thread["text"] == "post"
        (reply,) = thread["children"]
        assert reply["author"] == {
            "_id": bob,
            "id": "bob",
            "name": "Bob",
            "image": "https://img.example.com/bob.png",
        }

    def test_unknown_user(self, mongo_db):
        assert fetch_user_posts("ghost") is None


class TestGetActivities:
    def test_excludes_own_replies(self, make_user, make_thread):
        alice = make_user("alice")
        bob = make_user("bob")
        carol = make_user("carol")
        post = make_thread("post", alice)
        other_post = make_thread("other post", alice, minutes=1)
        make_thread("self reply", alice, parent_id=post, minutes=2)
        bob_reply = make_thread("bob reply", bob, parent_id=post, minutes=3)
        carol_reply = make_thread("carol reply", carol, parent_id=other_post, minutes=4)

        activities = get_activities(alice)
        assert [activity["_id"] for activity in activities] == [carol_reply, bob_reply]
        assert activities[0]["author"]["name"] == "Carol"
        assert activities[0]["parent_id"] == other_post

    def test_replies_to_others_are_not_activity(self, make_user, make_thread):
        alice = make_user("alice")
        bob = make_user("bob")
        bob_post = make_thread("bob post", bob)
        make_thread("alice reply", alice, parent_id=bob_post, minutes=1)

        assert get_activities(str(alice)) == []
        assert len(get_activities(bob)) == 1

    def test_no_threads(self, make_user):
        assert get_activities(make_user("alice")) == []

    def test_malformed_id(self, mongo_db):
        with pytest.raises(ActionError, match="^Failed to fetch user activities"):
            get_activities("bad")
