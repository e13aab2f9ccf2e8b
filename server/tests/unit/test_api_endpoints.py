"""Integration tests for API endpoints."""

from datetime import timedelta

import pytest

from travel_agency.core.timeutils import utcnow


def _trip_payload(**overrides) -> dict:
    start = utcnow() + timedelta(days=30)
    payload = {
        "title": "Alpine Hiking Week",
        "destination": "Zermatt",
        "country": "Switzerland",
        "package_type": "Adventure",
        "description": "Guided hikes below the Matterhorn",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=7)).isoformat(),
        "capacity": 1,
        "price_amount": 150000,
    }
    payload.update(overrides)
    return payload


async def _create_trip(client, auth_headers, **overrides) -> dict:
    response = await client.post(
        "/v1/trip/create",
        json=_trip_payload(**overrides),
        headers=auth_headers("admin", admin=True),
    )
    assert response.status_code == 200
    return response.json()


async def _book(client, auth_headers, user_id: str, trip_id: int, party_size: int = 1):
    return await client.post(
        "/v1/booking/create",
        json={"trip_id": trip_id, "party_size": party_size},
        headers=auth_headers(user_id),
    )


async def _cancel(client, auth_headers, user_id: str, booking_id: int):
    return await client.post(
        "/v1/booking/cancel",
        json={"booking_id": booking_id},
        headers=auth_headers(user_id),
    )


async def _join(client, auth_headers, user_id: str, trip_id: int):
    return await client.post(
        "/v1/waitlist/join",
        json={"trip_id": trip_id},
        headers=auth_headers(user_id),
    )


@pytest.mark.asyncio
async def test_create_trip_endpoint(test_client, auth_headers):
    """Test the trip creation endpoint."""
    data = await _create_trip(test_client, auth_headers, capacity=12)

    assert data["title"] == "Alpine Hiking Week"
    assert data["capacity"] == 12
    assert data["available_rooms"] == 12
    assert data["price"] == {"amount": 150000, "currency": "USD"}
    assert data["old_price"] is None
    assert "id" in data


@pytest.mark.asyncio
async def test_create_trip_missing_auth(test_client):
    """Test trip creation without authentication."""
    response = await test_client.post("/v1/trip/create", json=_trip_payload())

    assert response.status_code == 401
    data = response.json()
    assert data["status"] == 401
    assert "authentication" in data["title"].lower()


@pytest.mark.asyncio
async def test_create_trip_requires_admin(test_client, auth_headers):
    """Test regular requesters cannot create trips."""
    response = await test_client.post("/v1/trip/create", json=_trip_payload(), headers=auth_headers("alice"))

    assert response.status_code == 403
    assert response.json()["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_create_trip_invalid_data(test_client, auth_headers):
    """Test trip creation with invalid data."""
    response = await test_client.post(
        "/v1/trip/create",
        json=_trip_payload(title="", capacity=-1),
        headers=auth_headers("admin", admin=True),
    )

    assert response.status_code == 422
    data = response.json()
    assert data["status"] == 422
    assert "violations" in data
    paths = {violation["path"] for violation in data["violations"]}
    assert "body.title" in paths
    assert "body.capacity" in paths


@pytest.mark.asyncio
async def test_invalid_token(test_client):
    """Test a token signed with another secret is refused."""
    response = await test_client.post(
        "/v1/trip/get",
        json={"trip_id": 1},
        headers={"Authorization": "Bearer not-a-real-token"},
    )

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_get_trip_endpoint(test_client, auth_headers):
    """Test fetching a trip and a missing one."""
    trip = await _create_trip(test_client, auth_headers)

    found = await test_client.post("/v1/trip/get", json={"trip_id": trip["id"]}, headers=auth_headers())
    missing = await test_client.post("/v1/trip/get", json={"trip_id": 9999}, headers=auth_headers())

    assert found.status_code == 200
    assert found.json()["id"] == trip["id"]
    assert missing.status_code == 404
    assert missing.json()["code"] == "TRIP_NOT_FOUND"
    assert missing.headers["content-type"] == "application/problem+json"


@pytest.mark.asyncio
async def test_discount_endpoint(test_client, auth_headers):
    """Test activating a discount shows both prices."""
    trip = await _create_trip(test_client, auth_headers)

    response = await test_client.post(
        "/v1/trip/discount",
        json={"trip_id": trip["id"], "price_amount": 120000},
        headers=auth_headers("admin", admin=True),
    )
    rejected = await test_client.post(
        "/v1/trip/discount",
        json={"trip_id": trip["id"], "price_amount": 200000},
        headers=auth_headers("admin", admin=True),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["price"]["amount"] == 120000
    assert data["old_price"]["amount"] == 150000
    assert data["is_discount_active"] is True
    assert data["discount_expires_at"] is not None
    assert rejected.status_code == 422


@pytest.mark.asyncio
async def test_booking_lifecycle_endpoints(test_client, auth_headers, sender):
    """Test creating, editing, paying and listing a booking."""
    trip = await _create_trip(test_client, auth_headers, capacity=5)

    created = await _book(test_client, auth_headers, "alice", trip["id"], party_size=2)
    assert created.status_code == 200
    booking = created.json()
    assert booking["status"] == "CONFIRMED"
    assert booking["total_price"]["amount"] == 300000
    assert booking["payment_reference"] == "PENDING"

    edited = await test_client.post(
        "/v1/booking/edit",
        json={"booking_id": booking["id"], "party_size": 3},
        headers=auth_headers("alice"),
    )
    assert edited.status_code == 200
    assert edited.json()["total_price"]["amount"] == 450000

    paid = await test_client.post(
        "/v1/booking/pay",
        json={
            "booking_id": booking["id"],
            "card": {
                "card_number": "4111111111111111",
                "expiry": "11/31",
                "cvv": "321",
                "holder_name": "Alice Traveller",
            },
        },
        headers=auth_headers("alice"),
    )
    assert paid.status_code == 200
    assert paid.json()["status"] == "PAID"
    assert paid.json()["payment_reference"].startswith("FAKE-")
    assert sender.recipients() == ["alice@example.com"]

    listed = await test_client.post("/v1/booking/list", json={"filter": "upcoming"}, headers=auth_headers("alice"))
    assert listed.status_code == 200
    assert [item["id"] for item in listed.json()["items"]] == [booking["id"]]

    trip_state = await test_client.post("/v1/trip/get", json={"trip_id": trip["id"]}, headers=auth_headers())
    assert trip_state.json()["available_rooms"] == 2


@pytest.mark.asyncio
async def test_booking_rejection_is_problem_details(test_client, auth_headers):
    """Test business-rule rejections carry a code and retry hint."""
    trip = await _create_trip(test_client, auth_headers, capacity=1)
    await _book(test_client, auth_headers, "alice", trip["id"])

    response = await _book(test_client, auth_headers, "bob", trip["id"])

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "INSUFFICIENT_INVENTORY"
    assert data["retryable"] is False
    assert "waiting list" in data["detail"]
    assert data["instance"] == "/v1/booking/create"


@pytest.mark.asyncio
async def test_get_booking_of_someone_else(test_client, auth_headers):
    """Test bookings are private to their owner."""
    trip = await _create_trip(test_client, auth_headers, capacity=2)
    booking = (await _book(test_client, auth_headers, "alice", trip["id"])).json()

    response = await test_client.post(
        "/v1/booking/get", json={"booking_id": booking["id"]}, headers=auth_headers("bob")
    )
    as_admin = await test_client.post(
        "/v1/booking/get", json={"booking_id": booking["id"]}, headers=auth_headers("admin", admin=True)
    )

    assert response.status_code == 403
    assert as_admin.status_code == 200


@pytest.mark.asyncio
async def test_waitlist_join_rules(test_client, auth_headers):
    """Test the queue only opens once a trip is sold out."""
    trip = await _create_trip(test_client, auth_headers, capacity=1)

    early = await _join(test_client, auth_headers, "bob", trip["id"])
    assert early.status_code == 409
    assert early.json()["code"] == "ROOMS_AVAILABLE"

    await _book(test_client, auth_headers, "alice", trip["id"])
    joined = await _join(test_client, auth_headers, "bob", trip["id"])
    again = await _join(test_client, auth_headers, "bob", trip["id"])

    assert joined.status_code == 200
    assert joined.json()["position"] == 1
    assert joined.json()["notified"] is False
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_QUEUED"


@pytest.mark.asyncio
async def test_waitlist_status_and_leave(test_client, auth_headers):
    """Test a requester sees and leaves their queue entries."""
    trip = await _create_trip(test_client, auth_headers, capacity=1)
    await _book(test_client, auth_headers, "alice", trip["id"])
    await _join(test_client, auth_headers, "bob", trip["id"])
    await _join(test_client, auth_headers, "carol", trip["id"])

    status = await test_client.post("/v1/waitlist/status", headers=auth_headers("carol"))
    assert status.status_code == 200
    (item,) = status.json()["items"]
    assert item["position"] == 2
    assert item["total_waiting"] == 2

    left = await test_client.post("/v1/waitlist/leave", json={"trip_id": trip["id"]}, headers=auth_headers("carol"))
    left_again = await test_client.post(
        "/v1/waitlist/leave", json={"trip_id": trip["id"]}, headers=auth_headers("carol")
    )
    assert left.json() == {"removed": True}
    assert left_again.json() == {"removed": False}


@pytest.mark.asyncio
async def test_waitlist_admin_endpoints(test_client, auth_headers, sender):
    """Test the administrator view and actions on a queue."""
    admin_headers = auth_headers("admin", admin=True)
    trip = await _create_trip(test_client, auth_headers, capacity=1)
    alice_booking = (await _book(test_client, auth_headers, "alice", trip["id"])).json()
    await _join(test_client, auth_headers, "bob", trip["id"])
    await _join(test_client, auth_headers, "carol", trip["id"])

    forbidden = await test_client.post("/v1/waitlist/queue", json={"trip_id": trip["id"]}, headers=auth_headers("bob"))
    assert forbidden.status_code == 403

    queue = await test_client.post("/v1/waitlist/queue", json={"trip_id": trip["id"]}, headers=admin_headers)
    assert queue.status_code == 200
    assert [item["requester_ref"] for item in queue.json()["items"]] == ["bob", "carol"]
    assert queue.json()["available_rooms"] == 0

    sold_out = await test_client.post("/v1/waitlist/notify-next", json={"trip_id": trip["id"]}, headers=admin_headers)
    assert sold_out.json()["notified"] is False
    assert sold_out.json()["message"] == "No rooms available to notify waiting users."

    bob_entry = queue.json()["items"][0]["id"]
    removed = await test_client.post("/v1/waitlist/remove", json={"entry_id": bob_entry}, headers=admin_headers)
    assert removed.json() == {"removed": True}

    await _cancel(test_client, auth_headers, "alice", alice_booking["id"])
    assert sender.recipients() == ["carol@example.com"]

    nobody_left = await test_client.post(
        "/v1/waitlist/notify-next", json={"trip_id": trip["id"]}, headers=admin_headers
    )
    assert nobody_left.json()["message"] == "No waiting users to notify."

    cleared = await test_client.post("/v1/waitlist/clear", json={"trip_id": trip["id"]}, headers=admin_headers)
    assert cleared.json() == {"removed": 1}


@pytest.mark.asyncio
async def test_waiting_list_turns_are_first_come_first_served(test_client, auth_headers, sender):
    """Test rooms freed on a sold-out trip go to waiting requesters in join order."""
    trip = await _create_trip(test_client, auth_headers, capacity=1)
    trip_id = trip["id"]

    x_booking = (await _book(test_client, auth_headers, "xavier", trip_id)).json()
    assert (await _join(test_client, auth_headers, "anna", trip_id)).status_code == 200
    assert (await _join(test_client, auth_headers, "ben", trip_id)).status_code == 200

    assert (await _cancel(test_client, auth_headers, "xavier", x_booking["id"])).status_code == 200
    assert sender.recipients() == ["anna@example.com"]

    ben_early = await _book(test_client, auth_headers, "ben", trip_id)
    assert ben_early.status_code == 409
    assert ben_early.json()["code"] == "NOT_YOUR_TURN"
    assert ben_early.json()["position"] == 2

    anna_booking = await _book(test_client, auth_headers, "anna", trip_id)
    assert anna_booking.status_code == 200

    ben_blocked = await _book(test_client, auth_headers, "ben", trip_id)
    assert ben_blocked.status_code == 409
    assert ben_blocked.json()["code"] == "INSUFFICIENT_INVENTORY"

    assert (await _cancel(test_client, auth_headers, "anna", anna_booking.json()["id"])).status_code == 200
    assert sender.recipients() == ["anna@example.com", "ben@example.com"]

    ben_booking = await _book(test_client, auth_headers, "ben", trip_id)
    assert ben_booking.status_code == 200

    queue = await test_client.post(
        "/v1/waitlist/queue", json={"trip_id": trip_id}, headers=auth_headers("admin", admin=True)
    )
    assert queue.json()["items"] == []


@pytest.mark.asyncio
async def test_admin_settings_endpoints(test_client, auth_headers):
    """Test administrators read and replace the booking policy."""
    admin_headers = auth_headers("admin", admin=True)
    new_policy = {
        "booking_lead_days": 40,
        "cancellation_deadline_days": 10,
        "reminder_days": 3,
        "max_discount_duration_days": 2,
        "waitlist_notification_expiration_days": 1,
    }

    defaults = await test_client.post("/v1/admin/settings/get", headers=admin_headers)
    updated = await test_client.post("/v1/admin/settings/update", json=new_policy, headers=admin_headers)
    reread = await test_client.post("/v1/admin/settings/get", headers=admin_headers)
    invalid = await test_client.post(
        "/v1/admin/settings/update",
        json={**new_policy, "max_discount_duration_days": 8},
        headers=admin_headers,
    )

    assert defaults.json()["booking_lead_days"] == 7
    assert updated.status_code == 200
    assert reread.json() == new_policy
    assert invalid.status_code == 422

    trip = await _create_trip(test_client, auth_headers)
    too_close = await _book(test_client, auth_headers, "alice", trip["id"])
    assert too_close.json()["code"] == "TOO_CLOSE_TO_DEPARTURE"


@pytest.mark.asyncio
async def test_metrics_endpoint(test_client):
    """Test the Prometheus metrics endpoint."""
    response = await test_client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]


@pytest.mark.asyncio
async def test_review_endpoints(test_client, auth_headers):
    """Test travellers review a trip once and authors or admins delete reviews."""
    trip = await _create_trip(test_client, auth_headers)

    created = await test_client.post(
        "/v1/review/create",
        json={"trip_id": trip["id"], "rating": 5, "comment": "Unforgettable"},
        headers=auth_headers("alice"),
    )
    again = await test_client.post(
        "/v1/review/create",
        json={"trip_id": trip["id"], "rating": 3},
        headers=auth_headers("alice"),
    )
    bad_rating = await test_client.post(
        "/v1/review/create",
        json={"trip_id": trip["id"], "rating": 6},
        headers=auth_headers("bob"),
    )
    await test_client.post(
        "/v1/review/create",
        json={"trip_id": trip["id"], "rating": 2},
        headers=auth_headers("bob"),
    )

    assert created.status_code == 200
    assert created.json()["rating"] == 5
    assert created.json()["comment"] == "Unforgettable"
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_REVIEWED"
    assert bad_rating.status_code == 422
    assert bad_rating.json()["code"] == "INVALID_RATING"

    listed = await test_client.post("/v1/review/list", json={"trip_id": trip["id"]}, headers=auth_headers("carol"))
    assert listed.status_code == 200
    assert listed.json()["count"] == 2
    assert listed.json()["average_rating"] == 3.5

    review_id = created.json()["id"]
    forbidden = await test_client.post(
        "/v1/review/delete", json={"review_id": review_id}, headers=auth_headers("bob")
    )
    deleted = await test_client.post(
        "/v1/review/delete", json={"review_id": review_id}, headers=auth_headers("admin", admin=True)
    )
    missing = await test_client.post(
        "/v1/review/delete", json={"review_id": review_id}, headers=auth_headers("alice")
    )

    assert forbidden.status_code == 403
    assert deleted.json() == {"deleted": True}
    assert missing.status_code == 404
    assert missing.json()["code"] == "REVIEW_NOT_FOUND"
