from __future__ import annotations

import pytest

from conftest import RIVERSIDE, GatedCall, race
from courtguardian.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from courtguardian.core.security import Caller, Role
from courtguardian.models.court import Provenance
from courtguardian.services.suggestions import SuggestionService

USER = Caller(user_id="user-1", role=Role.USER)
MODERATOR = Caller(user_id="mod-1", role=Role.MODERATOR)
OTHER_MODERATOR = Caller(user_id="mod-2", role=Role.MODERATOR)


@pytest.fixture
def service(store, fake_geocoder) -> SuggestionService:
    return SuggestionService(store, fake_geocoder)


def test_submit_geocodes_missing_coordinates(service) -> None:
    suggestion = service.submit(USER, "Riverside Tennis Courts", "100 Riverside Dr, Atlanta, GA", "Tennis")

    assert (suggestion.latitude, suggestion.longitude) == RIVERSIDE
    assert suggestion.sport_type == "tennis"
    assert suggestion.status == "pending"
    assert suggestion.suggested_by == "user-1"


def test_submit_keeps_given_coordinates(service) -> None:
    suggestion = service.submit(USER, "Backyard Court", "Unlisted lane", "padel", latitude=33.7, longitude=-84.4)

    assert (suggestion.latitude, suggestion.longitude) == (33.7, -84.4)


def test_submit_fails_when_address_cannot_be_geocoded(service, fake_geocoder) -> None:
    with pytest.raises(ValidationError):
        service.submit(USER, "Mystery Courts", "Nowhere", "tennis")

    fake_geocoder.fail = True
    with pytest.raises(ValidationError):
        service.submit(USER, "Riverside Tennis Courts", "100 Riverside Dr, Atlanta, GA", "tennis")


def test_submit_validation(service) -> None:
    with pytest.raises(ValidationError):
        service.submit(USER, "", "100 Riverside Dr, Atlanta, GA", "tennis")
    with pytest.raises(ValidationError):
        service.submit(USER, "Riverside", "100 Riverside Dr, Atlanta, GA", "curling")
    with pytest.raises(ValidationError):
        service.submit(USER, "Riverside", "Somewhere", "tennis", latitude=95.0, longitude=0.0)


def test_approval_with_create_court_promotes(service, store) -> None:
    suggestion = service.submit(USER, "Riverside Tennis Courts", "100 Riverside Dr, Atlanta, GA", "tennis")

    outcome = service.review(MODERATOR, suggestion.id, "approved", admin_notes="Looks right", create_court=True)

    assert outcome["court_created"] is True
    court = store.get(outcome["court_id"])
    assert court.provenance == Provenance.USER_SUGGESTED.value
    assert court.address == "100 Riverside Dr, Atlanta, GA"
    assert outcome["suggestion"].status == "approved"
    assert outcome["suggestion"].court_id == court.id
    assert outcome["suggestion"].reviewed_by == "mod-1"


def test_approval_of_known_court_links_instead_of_duplicating(service, store, make_candidate) -> None:
    existing = store.insert(make_candidate())
    suggestion = service.submit(USER, "Riverside Tennis Court", "100 Riverside Dr, Atlanta, GA", "pickleball")

    outcome = service.review(MODERATOR, suggestion.id, "approved", create_court=True)

    assert outcome["court_created"] is False
    assert outcome["court_id"] == existing.id
    assert store.count() == 1
    court = store.get(existing.id)
    assert court.sport_types == ["tennis", "pickleball"]
    assert court.address == "100 Riverside Dr, Atlanta, GA"


def test_approval_without_create_court_only_marks_status(service, store) -> None:
    suggestion = service.submit(USER, "Riverside Tennis Courts", "100 Riverside Dr, Atlanta, GA", "tennis")

    outcome = service.review(MODERATOR, suggestion.id, "approved")

    assert outcome["court_id"] is None
    assert store.count() == 0


def test_review_rules(service) -> None:
    suggestion = service.submit(USER, "Riverside Tennis Courts", "100 Riverside Dr, Atlanta, GA", "tennis")

    with pytest.raises(AuthorizationError):
        service.review(USER, suggestion.id, "approved")
    with pytest.raises(ValidationError):
        service.review(MODERATOR, suggestion.id, "pending")
    with pytest.raises(NotFoundError):
        service.review(MODERATOR, 999, "approved")

    service.review(MODERATOR, suggestion.id, "rejected", admin_notes="Private court")
    with pytest.raises(ConflictError):
        service.review(MODERATOR, suggestion.id, "approved")


def test_list_filters_by_status(service) -> None:
    first = service.submit(USER, "Riverside Tennis Courts", "100 Riverside Dr, Atlanta, GA", "tennis")
    second = service.submit(USER, "Piedmont Park Tennis Center", "1 Piedmont Park, Atlanta, GA", "tennis")
    service.review(MODERATOR, first.id, "rejected")

    pending, total = service.list(MODERATOR)
    assert total == 1
    assert [s.id for s in pending] == [second.id]

    everything, total = service.list(MODERATOR, status="all")
    assert total == 2

    with pytest.raises(AuthorizationError):
        service.list(USER)
    with pytest.raises(ValidationError):
        service.list(MODERATOR, status="archived")


def test_concurrent_reviews_resolve_a_suggestion_once(service, store, monkeypatch) -> None:
    suggestion = service.submit(USER, "Riverside Tennis Courts", "100 Riverside Dr, Atlanta, GA", "tennis")
    gate = GatedCall(store.insert)
    monkeypatch.setattr(store, "insert", gate)

    outcomes = race(
        gate,
        lambda: service.review(MODERATOR, suggestion.id, "approved", admin_notes="first", create_court=True),
        lambda: service.review(OTHER_MODERATOR, suggestion.id, "approved", admin_notes="second", create_court=True),
    )

    assert isinstance(outcomes[0], dict)
    assert isinstance(outcomes[1], ConflictError)
    assert store.count() == 1
    listed, _ = service.list(MODERATOR, status="approved")
    assert [(s.reviewed_by, s.admin_notes, s.court_id) for s in listed] == [("mod-1", "first", outcomes[0]["court_id"])]
