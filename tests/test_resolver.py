import pytest
from bson import ObjectId

from storefront.geo import haversine_km
from storefront.resolver import (
    find_nearby_products,
    parse_stock,
    products_in_stock_at,
    resolve_nearest_serviceable_warehouse,
    service_range_km,
    stock_at,
)

from conftest import BANGALORE, DELHI, MUMBAI


def make_warehouse(name, lat, lng, range_in_km=50, **extra):
    return {
        "_id": ObjectId(),
        "name": name,
        "coordinates": {"lat": lat, "lng": lng},
        "range_in_km": range_in_km,
        **extra,
    }


@pytest.fixture
def metro_warehouses():
    return [
        make_warehouse("Delhi Hub", *DELHI),
        make_warehouse("Mumbai Hub", *MUMBAI),
    ]


def test_resolves_the_warehouse_serving_the_location(metro_warehouses):
    warehouse, distance = resolve_nearest_serviceable_warehouse(28.7, 77.1, metro_warehouses)

    assert warehouse["name"] == "Delhi Hub"
    assert distance == pytest.approx(haversine_km(28.7, 77.1, *DELHI))
    assert distance < 50


def test_returns_none_when_no_warehouse_is_in_range(metro_warehouses):
    assert resolve_nearest_serviceable_warehouse(*BANGALORE, metro_warehouses) is None


def test_returns_none_for_an_empty_directory():
    assert resolve_nearest_serviceable_warehouse(0, 0, []) is None


def test_prefers_the_closest_in_range_warehouse_regardless_of_order():
    far = make_warehouse("Far", 0, 0.5, range_in_km=500)
    near = make_warehouse("Near", 0, 0.1, range_in_km=500)

    warehouse, _ = resolve_nearest_serviceable_warehouse(0, 0, [far, near])
    assert warehouse["name"] == "Near"


def test_closer_warehouse_out_of_its_own_range_is_skipped():
    tight = make_warehouse("Tight", 0, 0.1, range_in_km=1)
    wide = make_warehouse("Wide", 0, 0.5, range_in_km=500)

    warehouse, _ = resolve_nearest_serviceable_warehouse(0, 0, [tight, wide])
    assert warehouse["name"] == "Wide"


def test_ties_go_to_the_first_warehouse_in_directory_order():
    east = make_warehouse("East", 0, 1, range_in_km=200)
    west = make_warehouse("West", 0, -1, range_in_km=200)

    warehouse, _ = resolve_nearest_serviceable_warehouse(0, 0, [east, west])
    assert warehouse["name"] == "East"

    warehouse, _ = resolve_nearest_serviceable_warehouse(0, 0, [west, east])
    assert warehouse["name"] == "West"


def test_range_boundary_is_inclusive():
    exact_range = haversine_km(0, 0, 0, 1)
    on_edge = make_warehouse("Edge", 0, 1, range_in_km=exact_range)

    warehouse, distance = resolve_nearest_serviceable_warehouse(0, 0, [on_edge])
    assert warehouse is on_edge
    assert distance == exact_range

    just_short = make_warehouse("Short", 0, 1, range_in_km=exact_range - 0.001)
    assert resolve_nearest_serviceable_warehouse(0, 0, [just_short]) is None


def test_missing_range_defaults_to_one_hundred_kilometers():
    inside = make_warehouse("Inside", 0, 0.8)
    outside = make_warehouse("Outside", 0, 1.0)
    del inside["range_in_km"]
    del outside["range_in_km"]

    assert service_range_km(inside) == 100.0
    assert resolve_nearest_serviceable_warehouse(0, 0, [outside]) is None
    warehouse, _ = resolve_nearest_serviceable_warehouse(0, 0, [outside, inside])
    assert warehouse["name"] == "Inside"


@pytest.mark.parametrize("bad_range", [-5, "wide", None, float("nan"), True])
def test_warehouses_with_unusable_ranges_are_skipped(bad_range):
    broken = make_warehouse("Broken", 0, 0.1, range_in_km=bad_range)
    fallback = make_warehouse("Fallback", 0, 0.2, range_in_km=100)

    warehouse, _ = resolve_nearest_serviceable_warehouse(0, 0, [broken, fallback])
    assert warehouse["name"] == "Fallback"


def test_warehouses_with_unusable_coordinates_are_skipped():
    no_coordinates = {"_id": ObjectId(), "name": "Nowhere", "range_in_km": 1000}
    bad_latitude = make_warehouse("Bad", 120, 0, range_in_km=100000)
    fallback = make_warehouse("Fallback", 0, 0.2, range_in_km=100)

    warehouse, _ = resolve_nearest_serviceable_warehouse(
        0, 0, [no_coordinates, bad_latitude, fallback]
    )
    assert warehouse["name"] == "Fallback"


def test_zero_range_only_serves_the_exact_location():
    pinpoint = make_warehouse("Pinpoint", 10, 10, range_in_km=0)

    warehouse, distance = resolve_nearest_serviceable_warehouse(10, 10, [pinpoint])
    assert warehouse is pinpoint
    assert distance == 0.0
    assert resolve_nearest_serviceable_warehouse(10, 10.01, [pinpoint]) is None


def test_stock_at_matches_string_and_object_identifiers():
    warehouse_id = ObjectId()
    product = {"warehouses": [{"warehouse_id": warehouse_id, "stock": 7}]}

    assert stock_at(product, warehouse_id) == 7
    assert stock_at(product, str(warehouse_id)) == 7
    assert stock_at(product, ObjectId()) is None
    assert stock_at({}, warehouse_id) is None


def test_stock_at_uses_the_first_matching_entry():
    warehouse_id = ObjectId()
    product = {
        "warehouses": [
            {"warehouse_id": warehouse_id, "stock": 0},
            {"warehouse_id": warehouse_id, "stock": 9},
        ]
    }
    assert stock_at(product, warehouse_id) == 0


def test_products_in_stock_at_keeps_only_positive_stock():
    warehouse_id = ObjectId()
    other_id = ObjectId()
    stocked = {"name": "Stocked", "warehouses": [{"warehouse_id": warehouse_id, "stock": 3}]}
    empty = {"name": "Empty", "warehouses": [{"warehouse_id": warehouse_id, "stock": 0}]}
    elsewhere = {"name": "Elsewhere", "warehouses": [{"warehouse_id": other_id, "stock": 8}]}
    no_ledger = {"name": "No ledger"}

    result = products_in_stock_at(warehouse_id, [stocked, empty, elsewhere, no_ledger])
    assert [product["name"] for product in result] == ["Stocked"]


def test_find_nearby_products_loads_the_resolved_warehouse_catalog(metro_warehouses):
    delhi_id = metro_warehouses[0]["_id"]
    requested = []

    def load_products(warehouse_id):
        requested.append(warehouse_id)
        return [
            {"name": "Tea", "warehouses": [{"warehouse_id": delhi_id, "stock": 4}]},
            {"name": "Sold out", "warehouses": [{"warehouse_id": delhi_id, "stock": 0}]},
        ]

    nearby = find_nearby_products(28.7, 77.1, metro_warehouses, load_products)

    assert requested == [delhi_id]
    assert nearby.warehouse["name"] == "Delhi Hub"
    assert [product["name"] for product in nearby.products] == ["Tea"]
    assert nearby.distance_km > 0


def test_find_nearby_products_skips_the_catalog_when_nothing_is_in_range(metro_warehouses):
    def load_products(warehouse_id):
        raise AssertionError("catalog should not be loaded")

    assert find_nearby_products(*BANGALORE, metro_warehouses, load_products) is None


def test_directory_errors_propagate():
    def failing_directory():
        yield make_warehouse("First", 0, 0.1)
        raise ConnectionError("directory went away")

    with pytest.raises(ConnectionError):
        resolve_nearest_serviceable_warehouse(0, 0, failing_directory())


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(5, 5), ("7", 7), (None, 0), ("n/a", 0), ("2.5", 0), (float("inf"), 0), ([3], 0)],
)
def test_parse_stock_tolerates_unreadable_values(raw, expected):
    assert parse_stock(raw) == expected


def test_stock_at_reads_unparseable_stock_as_empty():
    warehouse_id = ObjectId()
    product = {"warehouses": [{"warehouse_id": warehouse_id, "stock": "lots"}]}

    assert stock_at(product, warehouse_id) == 0
    assert products_in_stock_at(warehouse_id, [product]) == []
