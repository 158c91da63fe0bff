import math
import re
import unicodedata
from typing import Dict, List, Optional, Set, Tuple
from uuid import uuid4

from bson import ObjectId
from bson.errors import InvalidId

from .geo import CoordinateError, parse_coordinate
from .resolver import DEFAULT_RANGE_KM

VISIBILITY_VISIBLE = "visible"
VISIBILITY_HIDDEN = "hidden"
VISIBILITY_STATES = (VISIBILITY_VISIBLE, VISIBILITY_HIDDEN)

LEGACY_HIDDEN_FIELDS = ("isHidden", "is_hidden")

WAREHOUSE_FIELD_ALIASES = {
    "name": ("name",),
    "address": ("address",),
    "coordinates": ("coordinates", "location"),
    "range_in_km": ("range_in_km", "rangeInKm", "range"),
    "delivery_time": ("delivery_time", "deliveryTime"),
    "delivery_cost": ("delivery_cost", "deliveryCost"),
}


def normalize_name(value: Optional[str]) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split()).strip()


def slugify(value: Optional[str]) -> str:
    normalized_name = normalize_name(value).lower()
    ascii_name = (
        unicodedata.normalize("NFKD", normalized_name)
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_name).strip("-")
    if not slug:
        slug = uuid4().hex
    return slug


def normalize_object_id_value(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def safe_float(value, default=0.0):
    if isinstance(value, bool):
        return default
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return default
    if math.isfinite(numeric):
        return numeric
    return default


def safe_positive_int(value, default=0):
    try:
        numeric = int(value)
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


def parse_bool(value, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    lowered = str(value).strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def pick_alias(payload: Dict, aliases) -> Tuple[bool, object]:
    for alias in aliases:
        if alias in payload:
            return True, payload.get(alias)
    return False, None


def normalize_visibility(value) -> str:
    if isinstance(value, bool):
        return VISIBILITY_HIDDEN if value else VISIBILITY_VISIBLE
    normalized = str(value or "").strip().lower()
    if normalized == VISIBILITY_HIDDEN:
        return VISIBILITY_HIDDEN
    return VISIBILITY_VISIBLE


def migrate_legacy_visibility(collection) -> int:
    """Collapse legacy hidden flags into the `visibility` state.

    Products used to carry either an `isHidden` boolean or a `visibility`
    enum with extra values (`catalog`, `search`). Both are rewritten to
    `visible` or `hidden` and the boolean is removed.
    """
    legacy_filter = {
        "$or": [
            *({field: {"$exists": True}} for field in LEGACY_HIDDEN_FIELDS),
            {"visibility": {"$nin": list(VISIBILITY_STATES)}},
        ]
    }

    migrated = 0
    for document in collection.find(legacy_filter):
        hidden = document.get("visibility") == VISIBILITY_HIDDEN or any(
            bool(document.get(field)) for field in LEGACY_HIDDEN_FIELDS
        )
        collection.update_one(
            {"_id": document["_id"]},
            {
                "$set": {
                    "visibility": VISIBILITY_HIDDEN if hidden else VISIBILITY_VISIBLE
                },
                "$unset": {field: "" for field in LEGACY_HIDDEN_FIELDS},
            },
        )
        migrated += 1
    return migrated


def normalize_stock_ledger(raw_entries) -> Tuple[Optional[List[Dict]], Optional[str]]:
    if raw_entries is None:
        return [], None
    if not isinstance(raw_entries, (list, tuple)):
        return None, "Warehouse stock must be a list of {warehouse_id, stock} entries."

    entries: List[Dict] = []
    seen: Set[ObjectId] = set()
    for raw in raw_entries:
        if not isinstance(raw, dict):
            return None, "Each warehouse stock entry must be an object."

        _, raw_id = pick_alias(raw, ("warehouse_id", "warehouseId", "warehouse"))
        warehouse_id = normalize_object_id_value(raw_id)
        if warehouse_id is None:
            return None, "Invalid warehouse identifier in stock entry."
        if warehouse_id in seen:
            return None, f"Warehouse {warehouse_id} appears more than once in the stock list."
        seen.add(warehouse_id)

        raw_stock = raw.get("stock", 0)
        if isinstance(raw_stock, bool):
            return None, "Stock must be a whole number."
        try:
            stock_value = float(raw_stock)
        except (TypeError, ValueError):
            return None, "Stock must be a whole number."
        if not math.isfinite(stock_value) or not stock_value.is_integer():
            return None, "Stock must be a whole number."
        if stock_value < 0:
            return None, "Stock cannot be negative."

        entries.append({"warehouse_id": warehouse_id, "stock": int(stock_value)})

    return entries, None


def normalize_warehouse_payload(
    payload: Optional[Dict], partial: bool = False
) -> Tuple[Optional[Dict], Optional[str]]:
    payload = payload if isinstance(payload, dict) else {}
    document: Dict = {}

    for field in ("name", "address"):
        present, value = pick_alias(payload, WAREHOUSE_FIELD_ALIASES[field])
        text = str(value or "").strip() if present else ""
        if text:
            document[field] = text
        elif present or not partial:
            return None, f"Warehouse {field} is required."

    present, raw_coordinates = pick_alias(payload, WAREHOUSE_FIELD_ALIASES["coordinates"])
    if present or not partial:
        if not isinstance(raw_coordinates, dict):
            return None, "Warehouse coordinates must include `lat` and `lng`."
        try:
            document["coordinates"] = {
                "lat": parse_coordinate(raw_coordinates.get("lat"), "lat"),
                "lng": parse_coordinate(raw_coordinates.get("lng"), "lng"),
            }
        except CoordinateError as exc:
            return None, str(exc)

    present, raw_range = pick_alias(payload, WAREHOUSE_FIELD_ALIASES["range_in_km"])
    if present:
        range_value = safe_float(raw_range, None)
        if range_value is None or range_value < 0:
            return None, "Service range must be a non-negative number of kilometers."
        document["range_in_km"] = range_value
    elif not partial:
        document["range_in_km"] = DEFAULT_RANGE_KM

    present, raw_time = pick_alias(payload, WAREHOUSE_FIELD_ALIASES["delivery_time"])
    if present:
        document["delivery_time"] = str(raw_time or "").strip()
    elif not partial:
        document["delivery_time"] = ""

    present, raw_cost = pick_alias(payload, WAREHOUSE_FIELD_ALIASES["delivery_cost"])
    if present:
        cost_value = safe_float(raw_cost, None)
        if cost_value is None or cost_value < 0:
            return None, "Delivery cost must be a non-negative number."
        document["delivery_cost"] = round(cost_value, 2)
    elif not partial:
        document["delivery_cost"] = 0.0

    return document, None
