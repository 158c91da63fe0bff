import mongomock
import pytest
from bson import ObjectId

from storefront.catalog import (
    migrate_legacy_visibility,
    normalize_stock_ledger,
    normalize_visibility,
    normalize_warehouse_payload,
    parse_bool,
    slugify,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Organic  Green Tea", "organic-green-tea"),
        ("Café Crème", "cafe-creme"),
        ("  Rice & Grains!! ", "rice-grains"),
    ],
)
def test_slugify(raw, expected):
    assert slugify(raw) == expected


def test_slugify_falls_back_to_a_random_token():
    assert len(slugify("!!!")) == 32


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("hidden", "hidden"),
        ("HIDDEN", "hidden"),
        ("visible", "visible"),
        ("catalog", "visible"),
        (None, "visible"),
        (True, "hidden"),
        (False, "visible"),
    ],
)
def test_normalize_visibility(raw, expected):
    assert normalize_visibility(raw) == expected


def test_parse_bool():
    assert parse_bool("true") is True
    assert parse_bool("0") is False
    assert parse_bool("maybe", default=True) is True
    assert parse_bool(None) is False


def test_stock_ledger_normalizes_identifiers_and_counts():
    first, second = ObjectId(), ObjectId()

    entries, error = normalize_stock_ledger(
        [
            {"warehouse_id": str(first), "stock": "12"},
            {"warehouseId": second, "stock": 0},
        ]
    )

    assert error is None
    assert entries == [
        {"warehouse_id": first, "stock": 12},
        {"warehouse_id": second, "stock": 0},
    ]


def test_stock_ledger_defaults_to_empty():
    assert normalize_stock_ledger(None) == ([], None)


@pytest.mark.parametrize(
    ("entries", "message"),
    [
        ("not a list", "must be a list"),
        (["abc"], "must be an object"),
        ([{"warehouse_id": "nope", "stock": 1}], "Invalid warehouse identifier"),
        ([{"warehouse_id": str(ObjectId()), "stock": 1.5}], "whole number"),
        ([{"warehouse_id": str(ObjectId()), "stock": "lots"}], "whole number"),
        ([{"warehouse_id": str(ObjectId()), "stock": True}], "whole number"),
        ([{"warehouse_id": str(ObjectId()), "stock": -1}], "cannot be negative"),
    ],
)
def test_stock_ledger_rejects_invalid_entries(entries, message):
    normalized, error = normalize_stock_ledger(entries)
    assert normalized is None
    assert message in error


def test_stock_ledger_rejects_duplicate_warehouses():
    warehouse_id = ObjectId()

    normalized, error = normalize_stock_ledger(
        [
            {"warehouse_id": warehouse_id, "stock": 1},
            {"warehouse_id": str(warehouse_id), "stock": 2},
        ]
    )

    assert normalized is None
    assert "appears more than once" in error


def test_warehouse_payload_applies_defaults():
    document, error = normalize_warehouse_payload(
        {
            "name": " Delhi Hub ",
            "address": "Connaught Place",
            "location": {"lat": "28.6139", "lng": 77.209},
        }
    )

    assert error is None
    assert document == {
        "name": "Delhi Hub",
        "address": "Connaught Place",
        "coordinates": {"lat": 28.6139, "lng": 77.209},
        "range_in_km": 100.0,
        "delivery_time": "",
        "delivery_cost": 0.0,
    }


def test_warehouse_payload_accepts_camel_case_fields():
    document, error = normalize_warehouse_payload(
        {
            "name": "Pune",
            "address": "Shivaji Nagar",
            "coordinates": {"lat": 18.52, "lng": 73.85},
            "rangeInKm": "25",
            "deliveryTime": "1-2 days",
            "deliveryCost": "49.999",
        }
    )

    assert error is None
    assert document["range_in_km"] == 25.0
    assert document["delivery_time"] == "1-2 days"
    assert document["delivery_cost"] == 50.0


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"address": "x", "coordinates": {"lat": 1, "lng": 1}}, "name is required"),
        ({"name": "x", "coordinates": {"lat": 1, "lng": 1}}, "address is required"),
        ({"name": "x", "address": "y"}, "coordinates"),
        ({"name": "x", "address": "y", "coordinates": {"lat": 95, "lng": 1}}, "`lat`"),
        (
            {"name": "x", "address": "y", "coordinates": {"lat": 1, "lng": 1}, "range_in_km": -1},
            "Service range",
        ),
        (
            {"name": "x", "address": "y", "coordinates": {"lat": 1, "lng": 1}, "delivery_cost": "free"},
            "Delivery cost",
        ),
    ],
)
def test_warehouse_payload_validation(payload, message):
    document, error = normalize_warehouse_payload(payload)
    assert document is None
    assert message in error


def test_partial_warehouse_payload_only_touches_given_fields():
    document, error = normalize_warehouse_payload({"range_in_km": 10}, partial=True)
    assert error is None
    assert document == {"range_in_km": 10.0}


def test_migrate_legacy_visibility():
    collection = mongomock.MongoClient().storefront.products
    collection.insert_many(
        [
            {"name": "Legacy hidden", "isHidden": True},
            {"name": "Legacy shown", "isHidden": False, "visibility": "catalog"},
            {"name": "Snake hidden", "is_hidden": True, "visibility": "visible"},
            {"name": "No state"},
            {"name": "Current", "visibility": "hidden"},
        ]
    )

    assert migrate_legacy_visibility(collection) == 4

    states = {
        document["name"]: document["visibility"]
        for document in collection.find({}, {"name": 1, "visibility": 1})
    }
    assert states == {
        "Legacy hidden": "hidden",
        "Legacy shown": "visible",
        "Snake hidden": "hidden",
        "No state": "visible",
        "Current": "hidden",
    }
    assert collection.count_documents({"isHidden": {"$exists": True}}) == 0
    assert collection.count_documents({"is_hidden": {"$exists": True}}) == 0
    assert migrate_legacy_visibility(collection) == 0
