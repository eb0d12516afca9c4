from __future__ import annotations

import pytest

from conftest import RIVERSIDE, north_of
from courtguardian.core.errors import ConflictError, NotFoundError, ValidationError
from courtguardian.models.court import Provenance, VerificationStatus
from courtguardian.services.court_store import courts_near


def test_insert_creates_unverified_court(store, make_candidate) -> None:
    court = store.insert(make_candidate(surface_type="hard", phone="?"))

    assert court.id is not None
    assert court.verification_status == VerificationStatus.UNVERIFIED.value
    assert court.provenance == Provenance.PLACE_SEARCH.value
    assert court.surface_type == "hard"
    assert court.phone is None
    assert "phone" in court.missing_fields
    assert court.needs_verification


def test_insert_without_coordinates_is_rejected(store, make_candidate) -> None:
    with pytest.raises(ValidationError):
        store.insert(make_candidate(lat=None))
    assert store.count() == 0


def test_insert_duplicate_raises_conflict_with_existing_id(store, make_candidate) -> None:
    first = store.insert(make_candidate())

    with pytest.raises(ConflictError) as exc:
        store.insert(make_candidate("Riverside Tennis Court", lat=north_of(RIVERSIDE[0], 40)))

    assert exc.value.existing_id == first.id
    assert store.count() == 1


def test_insert_same_place_id_conflicts(store, make_candidate) -> None:
    first = store.insert(make_candidate(google_place_id="place-1"))

    with pytest.raises(ConflictError) as exc:
        store.insert(make_candidate("Somewhere Else", lat=40.0, lng=-74.0, google_place_id="place-1"))

    assert exc.value.existing_id == first.id


def test_find_near_orders_by_distance_and_filters_sport(store, session_factory, make_candidate) -> None:
    far = store.insert(make_candidate("Far Courts", lat=north_of(RIVERSIDE[0], 900)))
    near = store.insert(make_candidate("Near Courts", lat=north_of(RIVERSIDE[0], 200)))
    store.insert(make_candidate("Hoops", lat=north_of(RIVERSIDE[0], 300), sport_types=["basketball"]))
    store.insert(make_candidate("Outside", lat=north_of(RIVERSIDE[0], 5000)))

    names = [c.name for c in store.find_near(*RIVERSIDE, 1000, sport="tennis")]
    assert names == [near.name, far.name]

    with session_factory() as db:
        pairs = courts_near(db, *RIVERSIDE, 1000)
    assert len(pairs) == 3
    assert pairs[0][1] == pytest.approx(0.2, abs=0.001)


def test_get_unknown_court(store) -> None:
    with pytest.raises(NotFoundError):
        store.get(999)


def test_update_field(store, make_candidate) -> None:
    court = store.insert(make_candidate())

    updated = store.update_field(court.id, "website", "https://riverside.example")

    assert updated.website == "https://riverside.example"
    with pytest.raises(ValidationError):
        store.update_field(court.id, "verification_status", "verified")


def test_fill_missing_fields_never_overwrites(store, make_candidate) -> None:
    court = store.insert(make_candidate(surface_type="clay"))

    filled = store.fill_missing_fields(
        court.id,
        {"surface_type": "hard", "phone": "404-555-0100"},
        sport_types=["pickleball"],
    )

    court = store.get(court.id)
    assert set(filled) == {"phone", "sport_types"}
    assert court.surface_type == "clay"
    assert court.phone == "404-555-0100"
    assert court.sport_types == ["tennis", "pickleball"]


def test_fill_missing_fields_skips_place_id_in_use(store, make_candidate) -> None:
    store.insert(make_candidate("Other Courts", lat=40.0, lng=-74.0, google_place_id="place-1"))
    court = store.insert(make_candidate())

    store.fill_missing_fields(court.id, {}, metadata={"google_place_id": "place-1", "google_rating": 4.5})

    court = store.get(court.id)
    assert court.google_place_id is None
    assert court.google_rating == 4.5


# 53m apart on either side of the 180th meridian
SUVA_EAST = (-18.0, 179.9997)
SUVA_WEST = (-18.0, -179.9998)


def test_find_near_sees_across_the_antimeridian(store, make_candidate) -> None:
    east = store.insert(make_candidate("Suva Tennis Courts", *SUVA_EAST))

    found = store.find_near(*SUVA_WEST, 100)

    assert [court.id for court in found] == [east.id]


def test_insert_duplicate_across_the_antimeridian_conflicts(store, make_candidate) -> None:
    first = store.insert(make_candidate("Suva Tennis Courts", *SUVA_EAST))

    with pytest.raises(ConflictError) as exc:
        store.insert(make_candidate("Suva Tennis Courts", *SUVA_WEST))

    assert exc.value.existing_id == first.id
    assert store.count() == 1
