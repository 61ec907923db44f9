"""Tests for the announcement REST endpoints."""

from datetime import timedelta

from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy import select

from classboard.db.time import utcnow
from classboard.models import Announcement, AnnouncementView, ReactionType
from classboard.services.broadcaster import GLOBAL_ROOM, Broadcaster

BASE = "/api/v1/announcements"


class TestReadAnnouncements:
    def test_list_active_orders_pinned_first(self, client, make_announcement):
        make_announcement("Pinned notice", is_pinned=True, pinned_at=utcnow())
        make_announcement("Newest notice")

        response = client.get(f"{BASE}/")

        assert response.status_code == status.HTTP_200_OK
        titles = [item["title"] for item in response.json()]
        assert titles == ["Pinned notice", "Newest notice"]

    def test_list_active_hides_inactive_and_expired(self, client, make_announcement):
        make_announcement("Visible")
        make_announcement("Inactive", is_active=False)
        make_announcement("Expired", expires_at=utcnow() - timedelta(days=1))
        make_announcement("Not yet expired", expires_at=utcnow() + timedelta(days=1))

        titles = {item["title"] for item in client.get(f"{BASE}/").json()}

        assert titles == {"Visible", "Not yet expired"}

    def test_list_all_requires_admin(
        self, client, make_announcement, admin_headers, member_headers
    ):
        make_announcement("Visible")
        make_announcement("Inactive", is_active=False)

        assert client.get(f"{BASE}/all", headers=member_headers).status_code == (
            status.HTTP_403_FORBIDDEN
        )
        response = client.get(f"{BASE}/all", headers=admin_headers)
        assert response.status_code == status.HTTP_200_OK
        assert {item["title"] for item in response.json()} == {"Visible", "Inactive"}

    def test_get_announcement_uses_camel_case(self, client, announcement, admin_user):
        response = client.get(f"{BASE}/{announcement.id}")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["id"] == announcement.id
        assert body["isPinned"] is False
        assert body["enableReactions"] is True
        assert body["viewCount"] == 0
        assert body["totalReactions"] == 0
        assert body["reactions"] == []
        assert body["userReaction"] is None
        assert body["author"] == {"id": admin_user.id, "name": admin_user.name}

    def test_get_includes_callers_own_reaction(
        self, client, announcement, member_headers
    ):
        client.post(
            f"{BASE}/{announcement.id}/reactions",
            json={"reactionType": "wow"},
            headers=member_headers,
        )

        body = client.get(f"{BASE}/{announcement.id}", headers=member_headers).json()

        assert body["userReaction"] == "wow"
        assert body["reactions"] == [{"type": "wow", "count": 1}]

    def test_get_missing_announcement(self, client):
        response = client.get(f"{BASE}/does-not-exist")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Announcement not found"


class TestManageAnnouncements:
    def test_create_requires_authentication(self, client):
        response = client.post(f"{BASE}/", json={"title": "Hi", "content": "There"})
        assert response.status_code in {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}

    def test_create_rejects_members(self, client, member_headers):
        response = client.post(
            f"{BASE}/", json={"title": "Hi", "content": "There"}, headers=member_headers
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_create_rejects_invalid_token(self, client):
        response = client.post(
            f"{BASE}/",
            json={"title": "Hi", "content": "There"},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_create_announcement(self, client, admin_headers, admin_user):
        response = client.post(
            f"{BASE}/",
            json={"title": "Exam schedule", "content": "See attached", "isPinned": True},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["title"] == "Exam schedule"
        assert body["isPinned"] is True
        assert body["pinnedAt"] is not None
        assert body["priority"] == "medium"
        assert body["author"]["id"] == admin_user.id

    def test_create_validates_payload(self, client, admin_headers):
        response = client.post(
            f"{BASE}/", json={"title": "", "content": "x"}, headers=admin_headers
        )
        assert response.status_code == 422

    def test_update_is_partial(self, client, announcement, admin_headers):
        response = client.patch(
            f"{BASE}/{announcement.id}",
            json={"title": "Field trip moved"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["title"] == "Field trip moved"
        assert body["content"] == "Bring a packed lunch."

    def test_update_rejects_null_for_required_fields(
        self, client, announcement, admin_headers
    ):
        for payload in ({"title": None}, {"content": None}, {"isActive": None}, {"priority": None}):
            response = client.patch(
                f"{BASE}/{announcement.id}", json=payload, headers=admin_headers
            )
            assert response.status_code == 422, payload

        body = client.get(f"{BASE}/{announcement.id}").json()
        assert body["title"] == "Field trip on Friday"
        assert body["isActive"] is True

    def test_update_can_clear_expiry(self, client, make_announcement, admin_headers):
        expiring = make_announcement(expires_at=utcnow() + timedelta(days=1))

        response = client.patch(
            f"{BASE}/{expiring.id}", json={"expiresAt": None}, headers=admin_headers
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["expiresAt"] is None

    def test_update_pin_stamps_pinned_at(self, client, announcement, admin_headers):
        pinned = client.patch(
            f"{BASE}/{announcement.id}", json={"isPinned": True}, headers=admin_headers
        ).json()
        unpinned = client.patch(
            f"{BASE}/{announcement.id}", json={"isPinned": False}, headers=admin_headers
        ).json()

        assert pinned["pinnedAt"] is not None
        assert unpinned["pinnedAt"] is None

    def test_update_missing_announcement(self, client, admin_headers):
        response = client.patch(
            f"{BASE}/does-not-exist", json={"title": "x"}, headers=admin_headers
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_toggle_pin(self, client, announcement, admin_headers):
        first = client.post(f"{BASE}/{announcement.id}/pin", headers=admin_headers).json()
        second = client.post(f"{BASE}/{announcement.id}/pin", headers=admin_headers).json()

        assert first["isPinned"] is True
        assert second["isPinned"] is False

    def test_delete_cascades_to_engagement(
        self, client, db_session, announcement, admin_headers
    ):
        client.post(f"{BASE}/{announcement.id}/views")
        client.post(f"{BASE}/{announcement.id}/reactions", json={"reactionType": "like"})

        response = client.delete(f"{BASE}/{announcement.id}", headers=admin_headers)

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert db_session.get(Announcement, announcement.id) is None
        assert db_session.scalars(
            select(AnnouncementView).where(AnnouncementView.announcement_id == announcement.id)
        ).all() == []
        assert client.get(f"{BASE}/{announcement.id}").status_code == status.HTTP_404_NOT_FOUND

    def test_delete_missing_announcement(self, client, admin_headers):
        response = client.delete(f"{BASE}/does-not-exist", headers=admin_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestReactionEndpoints:
    def test_anonymous_reaction_sets_visitor_cookie(self, client, announcement):
        response = client.post(
            f"{BASE}/{announcement.id}/reactions", json={"reactionType": "like"}
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert "__vid" in response.cookies
        body = response.json()
        assert body["reaction"]["reactionType"] == "like"
        assert body["reaction"]["userId"] is None
        assert body["counts"] == [{"type": "like", "count": 1}]
        assert body["totalReactions"] == 1

    def test_returning_visitor_replaces_reaction(self, client, announcement):
        client.post(f"{BASE}/{announcement.id}/reactions", json={"reactionType": "love"})
        response = client.post(
            f"{BASE}/{announcement.id}/reactions", json={"reactionType": "like"}
        )

        body = response.json()
        assert body["counts"] == [{"type": "like", "count": 1}]
        assert body["totalReactions"] == 1

    def test_reaction_carries_over_after_login(
        self, client, announcement, member_user, member_headers
    ):
        client.post(f"{BASE}/{announcement.id}/reactions", json={"reactionType": "love"})

        # Same browser (visitor cookie kept by the client), now signed in.
        response = client.post(
            f"{BASE}/{announcement.id}/reactions",
            json={"reactionType": "haha"},
            headers=member_headers,
        )

        body = response.json()
        assert body["reaction"]["userId"] == member_user.id
        assert body["counts"] == [{"type": "haha", "count": 1}]

    def test_invalid_reaction_type(self, client, announcement):
        response = client.post(
            f"{BASE}/{announcement.id}/reactions", json={"reactionType": "meh"}
        )
        assert response.status_code == 422

    def test_reactions_disabled(self, client, make_announcement):
        announcement = make_announcement(enable_reactions=False)

        response = client.post(
            f"{BASE}/{announcement.id}/reactions", json={"reactionType": "like"}
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"] == "Reactions are disabled for this announcement"

    def test_reaction_on_missing_announcement(self, client):
        response = client.post(f"{BASE}/does-not-exist/reactions", json={"reactionType": "like"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_remove_reaction_requires_authentication(self, client, announcement):
        response = client.delete(f"{BASE}/{announcement.id}/reactions")
        assert response.status_code in {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}

    def test_remove_reaction(self, client, announcement, member_headers):
        client.post(
            f"{BASE}/{announcement.id}/reactions",
            json={"reactionType": "sad"},
            headers=member_headers,
        )

        response = client.delete(f"{BASE}/{announcement.id}/reactions", headers=member_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"counts": [], "totalReactions": 0}

    def test_remove_without_reaction_is_ok(self, client, announcement, member_headers):
        response = client.delete(f"{BASE}/{announcement.id}/reactions", headers=member_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["totalReactions"] == 0

    def test_remove_on_missing_announcement(self, client, member_headers):
        response = client.delete(f"{BASE}/does-not-exist/reactions", headers=member_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestViewEndpoints:
    def test_view_counts_once_per_visitor(self, client, announcement):
        first = client.post(f"{BASE}/{announcement.id}/views")
        second = client.post(f"{BASE}/{announcement.id}/views")

        assert first.status_code == status.HTTP_200_OK
        assert first.json() == {"isNewView": True, "viewCount": 1}
        assert second.json() == {"isNewView": False, "viewCount": 1}

    def test_distinct_browsers_count_separately(self, app, client, announcement, broadcaster):
        client.post(f"{BASE}/{announcement.id}/views")
        with TestClient(app, base_url="http://test") as second_browser:
            response = second_browser.post(
                f"{BASE}/{announcement.id}/views",
                headers={"X-Forwarded-For": "198.51.100.44", "User-Agent": "Safari"},
            )

        assert response.json() == {"isNewView": True, "viewCount": 2}

    def test_view_on_missing_announcement(self, client):
        assert client.post(f"{BASE}/does-not-exist/views").status_code == (
            status.HTTP_404_NOT_FOUND
        )

    def test_viewers_are_admin_only(
        self, client, announcement, member_user, member_headers, admin_headers
    ):
        client.post(f"{BASE}/{announcement.id}/views", headers=member_headers)

        forbidden = client.get(f"{BASE}/{announcement.id}/viewers", headers=member_headers)
        allowed = client.get(f"{BASE}/{announcement.id}/viewers", headers=admin_headers)

        assert forbidden.status_code == status.HTTP_403_FORBIDDEN
        assert allowed.status_code == status.HTTP_200_OK
        viewers = allowed.json()
        assert [(v["id"], v["name"]) for v in viewers] == [(member_user.id, member_user.name)]
        assert "viewedAt" in viewers[0]


class TestBroadcastIsolation:
    def test_broadcast_failure_does_not_fail_the_request(
        self, client, announcement, broadcaster: Broadcaster
    ):
        # A room member with no registered connection makes fan-out blow up internally.
        broadcaster._rooms[GLOBAL_ROOM] = {"ghost"}

        response = client.post(
            f"{BASE}/{announcement.id}/reactions", json={"reactionType": ReactionType.LIKE.value}
        )

        assert response.status_code == status.HTTP_201_CREATED
