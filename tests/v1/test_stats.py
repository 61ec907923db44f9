"""Tests for the public statistics endpoint."""

from datetime import timedelta

from fastapi import status

from classboard.db.time import utcnow
from classboard.services.announcements import AnnouncementService


def test_stats_with_no_announcements(client):
    response = client.get("/api/v1/stats")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"announcements": 0}


def test_stats_counts_only_visible_announcements(client, db_session, make_announcement):
    make_announcement("Visible")
    make_announcement("Pinned", is_pinned=True, pinned_at=utcnow())
    make_announcement("Not yet expired", expires_at=utcnow() + timedelta(days=1))
    make_announcement("Inactive", is_active=False)
    make_announcement("Expired", expires_at=utcnow() - timedelta(days=1))

    body = client.get("/api/v1/stats").json()

    assert body == {"announcements": 3}
    service = AnnouncementService(db_session)
    assert service.count_active() == len(service.list_active())
