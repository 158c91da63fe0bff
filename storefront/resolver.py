"""Nearest serviceable warehouse lookup and per-warehouse stock filtering.

Both steps are read-only. Data-access errors raised while iterating the
warehouse directory or loading the product catalog propagate unchanged.
"""

import math
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

from .geo import extract_coordinates, haversine_km

DEFAULT_RANGE_KM = 100.0


class NearbyProducts(NamedTuple):
    warehouse: Dict
    distance_km: float
    products: List[Dict]


def service_range_km(warehouse: Dict) -> Optional[float]:
    raw_range = warehouse.get("range_in_km", DEFAULT_RANGE_KM)
    if raw_range is None or isinstance(raw_range, bool):
        return None
    try:
        range_km = float(raw_range)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(range_km) or range_km < 0:
        return None
    return range_km


def resolve_nearest_serviceable_warehouse(
    latitude: float, longitude: float, warehouses: Iterable[Dict]
) -> Optional[Tuple[Dict, float]]:
    best_distance = math.inf
    best_warehouse = None

    for warehouse in warehouses:
        location = extract_coordinates(warehouse)
        range_km = service_range_km(warehouse)
        if location is None or range_km is None:
            continue

        distance = haversine_km(latitude, longitude, location[0], location[1])
        if distance > range_km:
            continue
        # Strict comparison keeps the first warehouse on ties.
        if distance < best_distance:
            best_distance = distance
            best_warehouse = warehouse

    if best_warehouse is None:
        return None
    return best_warehouse, best_distance


def parse_stock(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def stock_at(product: Dict, warehouse_id) -> Optional[int]:
    target = str(warehouse_id)
    ledger = product.get("warehouses")
    if not isinstance(ledger, list):
        return None

    for entry in ledger:
        if not isinstance(entry, dict):
            continue
        if str(entry.get("warehouse_id")) != target:
            continue
        return parse_stock(entry.get("stock"))
    return None


def products_in_stock_at(warehouse_id, products: Iterable[Dict]) -> List[Dict]:
    in_stock: List[Dict] = []
    for product in products:
        stock = stock_at(product, warehouse_id)
        if stock is not None and stock > 0:
            in_stock.append(product)
    return in_stock


def find_nearby_products(
    latitude: float,
    longitude: float,
    warehouses: Iterable[Dict],
    load_products: Callable[[object], Iterable[Dict]],
) -> Optional[NearbyProducts]:
    resolved = resolve_nearest_serviceable_warehouse(latitude, longitude, warehouses)
    if resolved is None:
        return None

    warehouse, distance = resolved
    warehouse_id = warehouse.get("_id")
    products = products_in_stock_at(warehouse_id, load_products(warehouse_id))
    return NearbyProducts(warehouse, distance, products)
