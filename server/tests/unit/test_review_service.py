"""Unit tests for trip reviews."""

import pytest

from travel_agency.core.exceptions import AlreadyReviewed, InvalidRating, ReviewNotFound, TripNotFound, Unauthorized
from travel_agency.models.review import Review
from travel_agency.services.review_service import ReviewService


@pytest.mark.asyncio
async def test_create_review(test_session, trip_factory, alice):
    """Test a traveller reviews a trip."""
    trip = await trip_factory()

    review = await ReviewService(test_session).create_review(trip.id, alice, 5, "  Wonderful guides  ")

    assert review.id is not None
    assert review.trip_id == trip.id
    assert review.requester_ref == "alice"
    assert review.rating == 5
    assert review.comment == "Wonderful guides"


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [0, 6, -1])
async def test_create_review_rating_out_of_range(test_session, trip_factory, alice, rating):
    """Test ratings outside 1 to 5 are rejected."""
    trip = await trip_factory()

    with pytest.raises(InvalidRating) as exc_info:
        await ReviewService(test_session).create_review(trip.id, alice, rating)

    assert exc_info.value.status_code == 422
    assert exc_info.value.problem_details["code"] == "INVALID_RATING"


@pytest.mark.asyncio
async def test_create_review_unknown_trip(test_session, alice):
    """Test reviewing a missing trip fails."""
    with pytest.raises(TripNotFound):
        await ReviewService(test_session).create_review(999, alice, 4)


@pytest.mark.asyncio
async def test_one_review_per_traveller_and_trip(test_session, trip_factory, alice, bob):
    """Test a second review of the same trip by the same traveller is refused."""
    trip = await trip_factory()
    other_trip = await trip_factory()
    service = ReviewService(test_session)
    first = await service.create_review(trip.id, alice, 4)

    with pytest.raises(AlreadyReviewed) as exc_info:
        await service.create_review(trip.id, alice, 2)

    assert exc_info.value.problem_details["review_id"] == first.id
    assert (await service.create_review(trip.id, bob, 3)).rating == 3
    assert (await service.create_review(other_trip.id, alice, 1)).rating == 1


@pytest.mark.asyncio
async def test_delete_review_by_author_or_admin(test_session, trip_factory, alice, bob, admin):
    """Test only the author or an administrator deletes a review."""
    trip = await trip_factory()
    service = ReviewService(test_session)
    alices = await service.create_review(trip.id, alice, 4)
    alices_id = alices.id
    bobs = await service.create_review(trip.id, bob, 2)
    bobs_id = bobs.id

    with pytest.raises(Unauthorized):
        await service.delete_review(alices_id, bob)

    await service.delete_review(alices_id, alice)
    await service.delete_review(bobs_id, admin)

    assert await test_session.get(Review, alices_id) is None
    assert await test_session.get(Review, bobs_id) is None
    with pytest.raises(ReviewNotFound):
        await service.delete_review(alices_id, alice)


@pytest.mark.asyncio
async def test_deleted_review_can_be_written_again(test_session, trip_factory, alice):
    """Test deleting a review lets its author review the trip again."""
    trip = await trip_factory()
    service = ReviewService(test_session)
    review = await service.create_review(trip.id, alice, 1)

    await service.delete_review(review.id, alice)
    again = await service.create_review(trip.id, alice, 5)

    assert again.rating == 5


@pytest.mark.asyncio
async def test_list_reviews_and_summary(test_session, trip_factory, alice, bob):
    """Test a trip's reviews are listed newest first with their average."""
    trip = await trip_factory()
    quiet_trip = await trip_factory()
    service = ReviewService(test_session)
    await service.create_review(trip.id, alice, 4, "Good")
    await service.create_review(trip.id, bob, 2, "Rainy")

    reviews = await service.list_reviews(trip.id)
    summary = await service.rating_summary(trip.id)
    empty = await service.rating_summary(quiet_trip.id)

    assert [review.requester_ref for review in reviews] == ["bob", "alice"]
    assert summary.count == 2
    assert summary.average == 3.0
    assert empty.count == 0
    assert empty.average is None
    assert await service.list_reviews(quiet_trip.id) == []
    with pytest.raises(TripNotFound):
        await service.list_reviews(999)
