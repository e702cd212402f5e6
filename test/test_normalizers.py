from models.settings import PlannerSettings
from planner.normalizers import (
    normalize_accommodation_draft,
    normalize_accommodations,
    normalize_budget_estimator,
    normalize_destination,
    normalize_extra_costs,
    normalize_flight_assignments,
    normalize_flight_draft,
    normalize_flights,
    normalize_settings,
    normalize_trip_payload,
)

from factories import accommodation_dict, destination_dict, flight_dict


def test_flight_list_drops_invalid_records():
    flights = normalize_flights([
        flight_dict("f1", 120),
        "not a record",
        {"pricePerPerson": 80},
        flight_dict("", 90),
        flight_dict("f2", -5),
        flight_dict("f3", "abc"),
        flight_dict("f4", True),
        flight_dict("f5", 70, link=42),
    ])
    assert [f.id for f in flights] == ["f1"]


def test_flight_price_strings_are_coerced():
    flights = normalize_flights([flight_dict("f1", " 149.5 ")])
    assert flights[0].price_per_person == 149.5


def test_missing_text_fields_default_to_empty():
    flights = normalize_flights([{"id": "f1", "pricePerPerson": 10}])
    assert flights[0].link == ""
    assert flights[0].start_date == ""


def test_duplicate_ids_keep_first():
    accommodations = normalize_accommodations([accommodation_dict("a1", 300), accommodation_dict("a1", 999)])
    assert len(accommodations) == 1
    assert accommodations[0].total_price == 300


def test_non_list_collections_become_empty():
    assert normalize_flights({"id": "f1"}) == []
    assert normalize_accommodations(None) == []


def test_legacy_scalar_extra_cost_is_upgraded():
    costs = normalize_extra_costs(75)
    assert len(costs) == 1
    assert costs[0].description == "General extra cost"
    assert costs[0].value == 75
    assert normalize_extra_costs(0) == []
    assert normalize_extra_costs(float("nan")) == []


def test_extra_costs_default_bad_values_and_drop_blank_entries():
    costs = normalize_extra_costs([
        {"description": "visa", "value": 50},
        {"description": "parking", "value": "twenty"},
        {"description": "  ", "value": 0},
        {"description": 12, "value": 30},
        "junk",
    ])
    assert [(c.description, c.value) for c in costs] == [("visa", 50), ("parking", 0), ("", 30)]


def test_flight_assignments_are_floored_and_canonical():
    assignments = normalize_flight_assignments({
        "f1": 2.9,
        "f2": -1,
        "f3": "3",
        "f4": float("inf"),
        "f5": 0,
        "f6": 0.4,
        "f7": False,
    })
    assert assignments == {"f1": 2}
    assert normalize_flight_assignments(["f1"]) == {}


def test_budget_estimator_collapses_legacy_attempts():
    estimator = normalize_budget_estimator({
        "flightAssignments": {"f1": 1},
        "selectedAccommodationId": "a1",
        "fixedAttemptId": "",
        "attempts": [
            {"id": "att-1", "name": "first", "createdAt": 1, "totalCost": 100},
            {"id": "att-2", "name": "second", "createdAt": 2, "totalCost": 200},
        ],
    })
    assert estimator.attempt.id == "att-1"
    assert estimator.fixed_attempt_id == "att-1"
    assert estimator.to_dict()["attempts"] == [estimator.attempt.to_dict()]


def test_budget_estimator_prefers_remembered_attempt():
    estimator = normalize_budget_estimator({
        "fixedAttemptId": "att-2",
        "attempts": [{"id": "att-1"}, {"bogus": True}, {"id": "att-2", "remaining": -40}],
    })
    assert estimator.fixed_attempt_id == "att-2"
    assert estimator.attempt.remaining == -40


def test_budget_estimator_defaults_when_missing():
    estimator = normalize_budget_estimator("nope")
    assert estimator.flight_assignments == {}
    assert estimator.selected_accommodation_id == ""
    assert estimator.fixed_attempt_id == ""


def test_drafts_keep_only_well_typed_fields():
    draft = normalize_flight_draft({"link": "https://x", "description": 5, "pricePerPerson": "99", "extra": 1})
    assert draft.link == "https://x"
    assert draft.description is None
    assert draft.price_per_person is None
    assert draft.to_dict() == {"link": "https://x"}

    stay = normalize_accommodation_draft({"totalPrice": 450, "startDate": "2026-05-01"})
    assert stay.total_price == 450
    assert stay.start_date == "2026-05-01"
    assert normalize_flight_draft([1, 2]).to_dict() == {}


def test_settings_fall_back_field_by_field():
    fallback = PlannerSettings(total_budget=3000, people_count=4)
    assert normalize_settings({"totalBudget": -1, "peopleCount": 6.7}, fallback) == PlannerSettings(3000, 6)
    assert normalize_settings({"totalBudget": 800, "peopleCount": 0.5}, fallback) == PlannerSettings(800, 4)
    assert normalize_settings(None, fallback) == fallback


def test_destination_requires_identity_and_coordinates():
    assert normalize_destination(destination_dict(latitude="38.7")) is None
    assert normalize_destination(destination_dict(flights=None)) is None
    assert normalize_destination(destination_dict(name=None)) is None
    assert normalize_destination(destination_dict()) is not None


def test_destination_without_collections_has_no_options():
    record = destination_dict()
    del record["flights"], record["accommodations"]
    destination = normalize_destination(record)
    assert destination.flights == []
    assert destination.accommodations == []
    assert normalize_destination(destination_dict(accommodations={"a1": {}})) is None


def test_destination_prunes_dangling_live_selection():
    destination = normalize_destination(destination_dict(
        flights=[flight_dict("f1", 100)],
        accommodations=[accommodation_dict("a1", 500)],
        budgetEstimator={"flightAssignments": {"f1": 2, "ghost": 1}, "selectedAccommodationId": "a9"},
    ))
    assert destination.budget_estimator.flight_assignments == {"f1": 2}
    assert destination.budget_estimator.selected_accommodation_id == ""


def test_payload_with_only_invalid_destinations_is_rejected():
    assert normalize_trip_payload({"destinations": [{"bogus": True}], "settings": {}}) is None


def test_payload_shape_is_checked_first():
    assert normalize_trip_payload(None) is None
    assert normalize_trip_payload({"destinations": "many"}) is None
    assert normalize_trip_payload([]) is None
    assert normalize_trip_payload({"settings": {}}) is None
    assert normalize_trip_payload({"meta": {"updatedAt": 5}}).destinations == []


def test_empty_payload_is_a_valid_empty_trip():
    document = normalize_trip_payload({"destinations": []})
    assert document.destinations == []


def test_payload_meta_is_read_when_well_typed():
    document = normalize_trip_payload({
        "destinations": [destination_dict(), {"bogus": True}],
        "meta": {"updatedAt": 1700000000000, "updatedBy": "client-a"},
    })
    assert len(document.destinations) == 1
    assert document.meta.updated_at == 1700000000000
    assert document.meta.updated_by == "client-a"

    document = normalize_trip_payload({"destinations": [], "meta": {"updatedAt": "yesterday", "updatedBy": 3}})
    assert document.meta.updated_at is None
    assert document.meta.updated_by is None


def test_normalizing_twice_changes_nothing():
    raw = {
        "destinations": [
            destination_dict(
                "d1",
                notes="book early",
                extraCosts=[{"description": "visa", "value": 50}, {"description": "", "value": 0}],
                flights=[flight_dict("f1", "120"), flight_dict("f2", 80)],
                accommodations=[accommodation_dict("a1", 500)],
                budgetEstimator={
                    "flightAssignments": {"f1": 2.5, "f2": 0},
                    "selectedAccommodationId": "a1",
                    "fixedAttemptId": "att-2",
                    "attempts": [
                        {"id": "att-1", "name": "old", "createdAt": 5},
                        {"id": "att-2", "name": "baseline", "createdAt": 9, "flightAssignments": {"f1": 2},
                         "selectedAccommodationId": "a1", "totalCost": 790, "remaining": 210, "perPersonTotal": 158},
                    ],
                },
                flightDraft={"description": "half typed", "pricePerPerson": 10},
                accommodationDraft={},
            ),
            destination_dict("d2", extraCosts=120),
        ],
        "settings": {"totalBudget": 1000, "peopleCount": 5},
    }
    first = normalize_trip_payload(raw)
    second = normalize_trip_payload(first.to_dict())
    assert second == first
    assert second.to_dict() == first.to_dict()
