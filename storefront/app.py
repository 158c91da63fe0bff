import math
import os
import re
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple

import bcrypt
from bson import ObjectId
from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_jwt_extended import (
    JWTManager,
    create_access_token,
    get_jwt_identity,
    jwt_required,
)
from flask_pymongo import PyMongo
from pymongo.errors import DuplicateKeyError, PyMongoError
from werkzeug.utils import secure_filename

from .catalog import (
    VISIBILITY_HIDDEN,
    VISIBILITY_VISIBLE,
    migrate_legacy_visibility,
    normalize_name,
    normalize_object_id_value,
    normalize_stock_ledger,
    normalize_visibility,
    normalize_warehouse_payload,
    parse_bool,
    pick_alias,
    safe_float,
    safe_positive_int,
    slugify,
)
from .geo import CoordinateError, parse_coordinate
from .mailer import send_otp_email
from .media import MediaError, MediaUploader, allowed_image_extension
from .otp import OtpError, OtpStore
from .resolver import find_nearby_products, parse_stock, stock_at

PINCODE_COORDINATES = {
    "110001": {"lat": 28.6328, "lng": 77.2197},
    "400001": {"lat": 18.9388, "lng": 72.8354},
    "560001": {"lat": 12.9766, "lng": 77.5993},
}


def create_app(test_config: Optional[Dict] = None, database=None) -> Flask:
    """Create and configure the Flask application.

    `database` lets callers hand in an already connected database handle
    (tests use an in-memory one); otherwise Flask-PyMongo connects to
    `MONGO_URI`.
    """
    load_dotenv()
    app = Flask(__name__)

    # --- Configuration ---
    app.config["JWT_SECRET_KEY"] = os.getenv(
        "JWT_SECRET_KEY", "change-me-in-production"
    )
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(days=1)
    app.config["MONGO_URI"] = os.getenv(
        "MONGO_URI", "mongodb://localhost:27017/storefront"
    )
    app.config["DEFAULT_ADMIN_EMAIL"] = os.getenv("DEFAULT_ADMIN_EMAIL", "")
    app.config["CLOUDINARY_CLOUD_NAME"] = os.getenv("CLOUDINARY_CLOUD_NAME", "")
    app.config["CLOUDINARY_API_KEY"] = os.getenv("CLOUDINARY_API_KEY", "")
    app.config["CLOUDINARY_API_SECRET"] = os.getenv("CLOUDINARY_API_SECRET", "")
    app.config["RESEND_API_KEY"] = os.getenv("RESEND_API_KEY", "")
    app.config["OTP_SENDER_EMAIL"] = os.getenv(
        "OTP_SENDER_EMAIL", "Storefront <no-reply@storefront.local>"
    )
    app.config["OTP_EXPIRATION_MINUTES"] = int(os.getenv("OTP_EXPIRATION_MINUTES", "10"))
    app.config["MAX_FAILED_OTP_ATTEMPTS"] = int(os.getenv("MAX_FAILED_OTP_ATTEMPTS", "5"))
    app.config["MAX_CONTENT_LENGTH"] = int(os.getenv("MAX_UPLOAD_SIZE_MB", "20")) * 1024 * 1024
    app.config["DEFAULT_PAGE_SIZE"] = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    app.config["CORS_ALLOWED_ORIGINS"] = os.getenv("CORS_ALLOWED_ORIGINS", "")

    if test_config:
        app.config.update(test_config)

    # --- Initialize extensions ---
    allowed_origins = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    for origin in str(app.config["CORS_ALLOWED_ORIGINS"] or "").split(","):
        trimmed = origin.strip()
        if trimmed:
            allowed_origins.append(trimmed)

    CORS(app, supports_credentials=True, origins=allowed_origins)
    JWTManager(app)

    if database is None:
        database = PyMongo(app).db
    db = database

    media = MediaUploader(
        app.config["CLOUDINARY_CLOUD_NAME"],
        app.config["CLOUDINARY_API_KEY"],
        app.config["CLOUDINARY_API_SECRET"],
    )
    otp_store = OtpStore(
        ttl_seconds=app.config["OTP_EXPIRATION_MINUTES"] * 60,
        max_attempts=app.config["MAX_FAILED_OTP_ATTEMPTS"],
    )
    app.extensions["storefront.media"] = media
    app.extensions["storefront.otp_store"] = otp_store

    default_admin_email = str(app.config["DEFAULT_ADMIN_EMAIL"] or "").strip().lower()

    try:
        db.users.create_index("email", unique=True)
        db.categories.create_index("slug", unique=True)
        db.brands.create_index("slug", unique=True)
        db.products.create_index("slug", unique=True)
        db.products.create_index("warehouses.warehouse_id")
        db.reviews.create_index([("product_id", 1), ("status", 1)])
        db.carts.create_index("user_id", unique=True)
        db.wishlists.create_index("user_id", unique=True)
    except PyMongoError as exc:
        app.logger.warning("Unable to ensure storefront indexes: %s", exc)

    try:
        migrated = migrate_legacy_visibility(db.products)
        if migrated:
            app.logger.info("Migrated legacy visibility on %s products.", migrated)
    except PyMongoError as exc:
        app.logger.warning("Unable to migrate legacy product visibility: %s", exc)

    # --- Helpers ---

    ALLOWED_USER_ROLES = {"admin", "standard"}
    REVIEW_STATUSES = {"pending", "approved", "rejected"}
    STOCK_STATUSES = {"in_stock", "out_of_stock", "on_backorder", "discontinued"}
    MAX_PAGE_SIZE = 100
    PUBLIC_PRODUCT_SORTS = {
        "price-asc": [("price", 1)],
        "price-desc": [("price", -1)],
        "newest": [("created_at", -1)],
        "rating": [("rating", -1)],
    }
    ADMIN_PRODUCT_SORTS = {
        **PUBLIC_PRODUCT_SORTS,
        "oldest": [("created_at", 1)],
        "name-asc": [("name", 1)],
        "name-desc": [("name", -1)],
    }
    PRODUCT_FLAGS = ("is_featured", "is_new", "is_trending", "on_sale", "allow_reviews")
    PRODUCT_FLAG_DEFAULTS = {
        "is_featured": False,
        "is_new": True,
        "is_trending": False,
        "on_sale": False,
        "allow_reviews": True,
    }

    def normalize_email(value: Optional[str]) -> str:
        return str(value or "").strip().lower()

    def isoformat_or_none(value) -> Optional[str]:
        return value.isoformat() if isinstance(value, datetime) else None

    def normalize_role(value: Optional[str]) -> str:
        normalized = str(value or "").strip().lower()
        return normalized if normalized in ALLOWED_USER_ROLES else "standard"

    def get_user_role(user_document) -> str:
        if not user_document:
            return "standard"
        email = normalize_email(user_document.get("email"))
        if default_admin_email and email == default_admin_email:
            return "admin"
        return normalize_role(user_document.get("role", "standard"))

    def get_current_user():
        current_email = get_jwt_identity()
        return db.users.find_one({"email": normalize_email(current_email)})

    def require_role(*roles: str):
        allowed = {normalize_role(role) for role in roles if role}

        current_user = get_current_user()
        if not current_user:
            return None, (jsonify({"message": "Account not found."}), 404)

        user_role = get_user_role(current_user)
        if user_role == "admin" or not allowed or user_role in allowed:
            return current_user, None

        return (
            None,
            (
                jsonify(
                    {"message": "Access denied. Admin privileges required."}
                ),
                403,
            ),
        )

    def require_admin_user():
        return require_role("admin")

    def require_current_user():
        return require_role()

    def parse_object_id(raw_value, label: str):
        object_id = normalize_object_id_value(raw_value)
        if object_id is None:
            return None, (jsonify({"message": f"Invalid {label} identifier."}), 400)
        return object_id, None

    def fetch_document(collection, raw_id, label: str):
        object_id, id_error = parse_object_id(raw_id, label)
        if id_error:
            return None, id_error
        document = collection.find_one({"_id": object_id})
        if not document:
            return None, (jsonify({"message": f"{label.capitalize()} not found."}), 404)
        return document, None

    def request_payload() -> Dict:
        payload = request.get_json(silent=True)
        if isinstance(payload, dict):
            return payload
        return request.form.to_dict() if request.form else {}

    def read_pagination() -> Tuple[int, int]:
        page = safe_positive_int(request.args.get("page"), 1)
        limit = safe_positive_int(request.args.get("limit"), app.config["DEFAULT_PAGE_SIZE"])
        return page, min(limit, MAX_PAGE_SIZE)

    def unique_slug(collection, name: str, exclude_id=None) -> str:
        base_slug = slugify(name)
        candidate = base_slug
        suffix = 2
        while True:
            query: Dict[str, object] = {"slug": candidate}
            if exclude_id is not None:
                query["_id"] = {"$ne": exclude_id}
            if not collection.find_one(query):
                return candidate
            candidate = f"{base_slug}-{suffix}"
            suffix += 1

    def slug_taken(collection, slug: str, exclude_id=None) -> bool:
        query: Dict[str, object] = {"slug": slug}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        return collection.find_one(query) is not None

    def upload_request_image(folder: str, **options):
        image_file = request.files.get("file") if request.files else None
        if not image_file:
            return None, (jsonify({"message": "No file uploaded"}), 400)
        if not allowed_image_extension(secure_filename(image_file.filename or "")):
            return (
                None,
                (
                    jsonify({"message": "Unsupported image format. Upload JPG, JPEG, PNG, or WEBP files."}),
                    400,
                ),
            )
        try:
            return media.upload(image_file, folder, **options), None
        except MediaError as exc:
            app.logger.error("Image upload to %s failed: %s", folder, exc)
            return (
                None,
                (jsonify({"message": "Failed to upload image", "error": str(exc)}), 502),
            )

    def destroy_hosted_images(public_ids) -> None:
        for public_id in public_ids:
            if not public_id:
                continue
            try:
                media.destroy(public_id)
            except MediaError as exc:
                app.logger.error("Unable to delete hosted image %s: %s", public_id, exc)

    # --- Serializers ---

    def serialize_user(user_document) -> Dict:
        if not user_document:
            return {}
        return {
            "id": str(user_document.get("_id")),
            "name": user_document.get("name", "") or "",
            "email": user_document.get("email", "") or "",
            "phone": user_document.get("phone", "") or "",
            "role": get_user_role(user_document),
            "is_admin": get_user_role(user_document) == "admin",
            "avatar_url": user_document.get("avatar_url", "") or "",
            "created_at": isoformat_or_none(user_document.get("created_at")),
        }

    def serialize_reference(document) -> Optional[Dict]:
        if not document:
            return None
        return {
            "id": str(document.get("_id")),
            "name": document.get("name", ""),
            "slug": document.get("slug", ""),
        }

    def serialize_category(category_document, product_counts=None) -> Dict:
        if not category_document:
            return {}
        parent_id = category_document.get("parent_id")
        product_count = 0
        if product_counts is not None:
            product_count = int(product_counts.get(category_document.get("_id"), 0) or 0)
        return {
            "id": str(category_document.get("_id")),
            "name": category_document.get("name", ""),
            "slug": category_document.get("slug", ""),
            "description": category_document.get("description", "") or "",
            "parent_id": str(parent_id) if parent_id else None,
            "image": category_document.get("image", "") or "",
            "image_public_id": category_document.get("image_public_id", "") or "",
            "visibility": normalize_visibility(category_document.get("visibility")),
            "is_popular": bool(category_document.get("is_popular")),
            "product_count": product_count,
            "created_at": isoformat_or_none(category_document.get("created_at")),
        }

    def serialize_brand(brand_document, product_counts=None) -> Dict:
        if not brand_document:
            return {}
        product_count = 0
        if product_counts is not None:
            product_count = int(product_counts.get(brand_document.get("_id"), 0) or 0)
        return {
            "id": str(brand_document.get("_id")),
            "name": brand_document.get("name", ""),
            "slug": brand_document.get("slug", ""),
            "description": brand_document.get("description", "") or "",
            "logo": brand_document.get("logo", "") or "",
            "logo_public_id": brand_document.get("logo_public_id", "") or "",
            "visibility": normalize_visibility(brand_document.get("visibility")),
            "product_count": product_count,
            "created_at": isoformat_or_none(brand_document.get("created_at")),
        }

    def serialize_warehouse(warehouse_document) -> Dict:
        if not warehouse_document:
            return {}
        coordinates = warehouse_document.get("coordinates") or {}
        return {
            "id": str(warehouse_document.get("_id")),
            "name": warehouse_document.get("name", ""),
            "address": warehouse_document.get("address", ""),
            "coordinates": {
                "lat": coordinates.get("lat"),
                "lng": coordinates.get("lng"),
            },
            "range_in_km": warehouse_document.get("range_in_km"),
            "delivery_time": warehouse_document.get("delivery_time", "") or "",
            "delivery_cost": warehouse_document.get("delivery_cost", 0) or 0,
            "created_at": isoformat_or_none(warehouse_document.get("created_at")),
            "updated_at": isoformat_or_none(warehouse_document.get("updated_at")),
        }

    def build_reference_maps(product_documents) -> Tuple[Dict, Dict]:
        category_ids: Set[ObjectId] = set()
        brand_ids: Set[ObjectId] = set()
        for document in product_documents:
            if isinstance(document.get("category_id"), ObjectId):
                category_ids.add(document["category_id"])
            if isinstance(document.get("brand_id"), ObjectId):
                brand_ids.add(document["brand_id"])

        category_map: Dict[ObjectId, Dict] = {}
        brand_map: Dict[ObjectId, Dict] = {}
        if category_ids:
            for document in db.categories.find({"_id": {"$in": list(category_ids)}}):
                category_map[document["_id"]] = document
        if brand_ids:
            for document in db.brands.find({"_id": {"$in": list(brand_ids)}}):
                brand_map[document["_id"]] = document
        return category_map, brand_map

    def serialize_product(product_document, category_map=None, brand_map=None) -> Dict:
        category_id = product_document.get("category_id")
        brand_id = product_document.get("brand_id")
        if category_map is None or brand_map is None:
            category_map, brand_map = build_reference_maps([product_document])

        ledger = []
        for entry in product_document.get("warehouses") or []:
            if not isinstance(entry, dict):
                continue
            ledger.append(
                {
                    "warehouse_id": str(entry.get("warehouse_id")),
                    "stock": parse_stock(entry.get("stock")),
                }
            )

        images = []
        for image in product_document.get("images") or []:
            if not isinstance(image, dict) or not image.get("url"):
                continue
            images.append(
                {
                    "url": image.get("url"),
                    "alt": image.get("alt", "") or "",
                    "public_id": image.get("public_id", "") or "",
                    "is_primary": bool(image.get("is_primary")),
                }
            )

        return {
            "id": str(product_document.get("_id")),
            "name": product_document.get("name", ""),
            "slug": product_document.get("slug", ""),
            "description": product_document.get("description", ""),
            "short_description": product_document.get("short_description", "") or "",
            "price": round(safe_float(product_document.get("price")), 2),
            "sale_price": round(safe_float(product_document.get("sale_price")), 2),
            "images": images,
            "category_id": str(category_id) if category_id else None,
            "brand_id": str(brand_id) if brand_id else None,
            "category": serialize_reference(category_map.get(category_id)),
            "brand": serialize_reference(brand_map.get(brand_id)),
            "stock": parse_stock(product_document.get("stock")),
            "stock_status": product_document.get("stock_status", "in_stock"),
            "tags": list(product_document.get("tags") or []),
            "visibility": normalize_visibility(product_document.get("visibility")),
            **{
                flag: bool(product_document.get(flag, PRODUCT_FLAG_DEFAULTS[flag]))
                for flag in PRODUCT_FLAGS
            },
            "rating": round(safe_float(product_document.get("rating")), 1),
            "num_reviews": int(product_document.get("num_reviews") or 0),
            "warehouses": ledger,
            "created_at": isoformat_or_none(product_document.get("created_at")),
            "updated_at": isoformat_or_none(product_document.get("updated_at")),
        }

    def serialize_products(product_documents) -> List[Dict]:
        category_map, brand_map = build_reference_maps(product_documents)
        return [
            serialize_product(document, category_map=category_map, brand_map=brand_map)
            for document in product_documents
        ]

    def serialize_review(review_document) -> Dict:
        return {
            "id": str(review_document.get("_id")),
            "product_id": str(review_document.get("product_id")),
            "user_id": str(review_document.get("user_id")),
            "user_name": review_document.get("user_name", "") or "",
            "rating": int(review_document.get("rating") or 0),
            "comment": review_document.get("comment", "") or "",
            "status": review_document.get("status", "pending"),
            "is_custom_store": bool(review_document.get("is_custom_store")),
            "created_at": isoformat_or_none(review_document.get("created_at")),
        }

    def serialize_question(question_document) -> Dict:
        return {
            "id": str(question_document.get("_id")),
            "product_id": str(question_document.get("product_id")),
            "user_id": str(question_document.get("user_id")),
            "user_name": question_document.get("user_name", "") or "",
            "question": question_document.get("question", "") or "",
            "answer": question_document.get("answer", "") or "",
            "is_approved": bool(question_document.get("is_approved")),
            "created_at": isoformat_or_none(question_document.get("created_at")),
        }

    def serialize_banner(banner_document) -> Dict:
        created_by = banner_document.get("created_by")
        return {
            "id": str(banner_document.get("_id")),
            "path": banner_document.get("path", ""),
            "name": banner_document.get("name", "") or "Unnamed Banner",
            "show": bool(banner_document.get("show", True)),
            "created_by": str(created_by) if created_by else None,
            "created_at": isoformat_or_none(banner_document.get("created_at")),
        }

    def serialize_product_summary(product_document) -> Optional[Dict]:
        if not product_document:
            return None
        images = product_document.get("images") or []
        primary = next(
            (image for image in images if isinstance(image, dict) and image.get("is_primary")),
            images[0] if images else None,
        )
        return {
            "id": str(product_document.get("_id")),
            "name": product_document.get("name", ""),
            "slug": product_document.get("slug", ""),
            "price": round(safe_float(product_document.get("price")), 2),
            "sale_price": round(safe_float(product_document.get("sale_price")), 2),
            "image": (primary or {}).get("url", "") if isinstance(primary, dict) else "",
        }

    def count_products_by(field: str) -> Dict[ObjectId, int]:
        counts: Dict[ObjectId, int] = {}
        pipeline = [
            {"$match": {field: {"$exists": True, "$ne": None}}},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        ]
        for entry in db.products.aggregate(pipeline):
            if entry.get("_id"):
                counts[entry["_id"]] = int(entry.get("count", 0) or 0)
        return counts

    # --- Product payloads ---

    def resolve_reference(collection, raw_value, label: str):
        object_id = normalize_object_id_value(raw_value)
        if object_id is None:
            return None, f"Invalid {label} identifier."
        if not collection.find_one({"_id": object_id}):
            return None, f"{label.capitalize()} not found."
        return object_id, None

    def normalize_images(raw_images):
        if not isinstance(raw_images, list):
            return None, "Images must be a list."
        images: List[Dict] = []
        for raw in raw_images:
            if isinstance(raw, str) and raw.strip():
                raw = {"url": raw.strip()}
            if not isinstance(raw, dict) or not str(raw.get("url") or "").strip():
                return None, "Each image needs a `url`."
            images.append(
                {
                    "url": str(raw.get("url")).strip(),
                    "alt": str(raw.get("alt") or "").strip(),
                    "public_id": str(
                        raw.get("public_id") or raw.get("publicId") or ""
                    ).strip(),
                    "is_primary": parse_bool(raw.get("is_primary", raw.get("isPrimary"))),
                }
            )
        if images and not any(image["is_primary"] for image in images):
            images[0]["is_primary"] = True
        return images, None

    def normalize_tags(raw_tags) -> List[str]:
        if isinstance(raw_tags, str):
            raw_tags = raw_tags.split(",")
        if not isinstance(raw_tags, (list, tuple)):
            return []
        tags: List[str] = []
        for tag in raw_tags:
            cleaned = str(tag or "").strip()
            if cleaned and cleaned not in tags:
                tags.append(cleaned)
        return tags

    def normalize_product_payload(payload: Dict, partial: bool = False):
        payload = payload if isinstance(payload, dict) else {}
        document: Dict[str, object] = {}

        if "name" in payload or not partial:
            name_value = normalize_name(payload.get("name"))
            if not name_value:
                return None, "A product name is required."
            document["name"] = name_value

        if "description" in payload or not partial:
            description_value = str(payload.get("description") or "").strip()
            if not description_value:
                return None, "A product description is required."
            document["description"] = description_value

        if "short_description" in payload:
            document["short_description"] = str(payload.get("short_description") or "").strip()

        if "price" in payload or not partial:
            price_value = safe_float(payload.get("price"), None)
            if price_value is None:
                return None, "Price must be a valid number."
            if price_value < 0:
                return None, "Price cannot be negative."
            document["price"] = round(price_value, 2)

        present, raw_sale = pick_alias(payload, ("sale_price", "salePrice"))
        if present:
            sale_value = safe_float(raw_sale, None)
            if sale_value is None or sale_value < 0:
                return None, "Sale price must be a non-negative number."
            if sale_value and "price" in document and sale_value >= document["price"]:
                return None, "Sale price must be lower than the standard price."
            document["sale_price"] = round(sale_value, 2)
        elif not partial:
            document["sale_price"] = 0.0

        for field, collection, label in (
            ("category", db.categories, "category"),
            ("brand", db.brands, "brand"),
        ):
            present, raw_reference = pick_alias(
                payload, (f"{field}_id", field, f"{field}Id")
            )
            if present or not partial:
                if not raw_reference:
                    return None, f"A product {label} is required."
                reference_id, reference_error = resolve_reference(collection, raw_reference, label)
                if reference_error:
                    return None, reference_error
                document[f"{field}_id"] = reference_id

        if "stock" in payload:
            raw_stock = payload.get("stock")
            stock_value = safe_float(raw_stock, None)
            if stock_value is None or stock_value < 0 or not float(stock_value).is_integer():
                return None, "Stock must be a non-negative whole number."
            document["stock"] = int(stock_value)
        elif not partial:
            document["stock"] = 0

        present, raw_status = pick_alias(payload, ("stock_status", "stockStatus"))
        if present:
            status_value = str(raw_status or "").strip().lower()
            if status_value not in STOCK_STATUSES:
                return None, "Unknown stock status."
            document["stock_status"] = status_value
        elif not partial:
            document["stock_status"] = "in_stock"

        if "images" in payload:
            images, images_error = normalize_images(payload.get("images"))
            if images_error:
                return None, images_error
            document["images"] = images
        elif not partial:
            document["images"] = []

        if "tags" in payload:
            document["tags"] = normalize_tags(payload.get("tags"))
        elif not partial:
            document["tags"] = []

        present, raw_visibility = pick_alias(payload, ("visibility",))
        legacy_present, legacy_hidden = pick_alias(payload, ("is_hidden", "isHidden"))
        if present:
            document["visibility"] = normalize_visibility(raw_visibility)
        elif legacy_present:
            document["visibility"] = normalize_visibility(parse_bool(legacy_hidden))
        elif not partial:
            document["visibility"] = VISIBILITY_VISIBLE

        for flag in PRODUCT_FLAGS:
            camel_flag = re.sub(r"_([a-z])", lambda match: match.group(1).upper(), flag)
            present, raw_flag = pick_alias(payload, (flag, camel_flag))
            if present:
                document[flag] = parse_bool(raw_flag, PRODUCT_FLAG_DEFAULTS[flag])
            elif not partial:
                document[flag] = PRODUCT_FLAG_DEFAULTS[flag]

        if "warehouses" in payload or not partial:
            ledger, ledger_error = normalize_stock_ledger(payload.get("warehouses"))
            if ledger_error:
                return None, ledger_error
            if ledger:
                known_ids = {
                    warehouse["_id"]
                    for warehouse in db.warehouses.find(
                        {"_id": {"$in": [entry["warehouse_id"] for entry in ledger]}},
                        {"_id": 1},
                    )
                }
                missing = [
                    str(entry["warehouse_id"])
                    for entry in ledger
                    if entry["warehouse_id"] not in known_ids
                ]
                if missing:
                    return None, f"Unknown warehouse(s): {', '.join(missing)}."
            document["warehouses"] = ledger

        return document, None

    def ledger_reference(warehouse_id) -> Dict[str, List]:
        # Older ledgers store the warehouse id as a plain string.
        return {"$in": [warehouse_id, str(warehouse_id)]}

    def recompute_product_rating(product_id) -> None:
        ratings = [
            int(review.get("rating") or 0)
            for review in db.reviews.find({"product_id": product_id, "status": "approved"})
        ]
        average = round(sum(ratings) / len(ratings), 1) if ratings else 0
        db.products.update_one(
            {"_id": product_id},
            {"$set": {"rating": average, "num_reviews": len(ratings)}},
        )

    def delete_products(product_documents) -> int:
        if not product_documents:
            return 0
        product_ids = [document["_id"] for document in product_documents]
        public_ids: List[str] = []
        for document in product_documents:
            for image in document.get("images") or []:
                if isinstance(image, dict) and image.get("public_id"):
                    public_ids.append(image["public_id"])
        destroy_hosted_images(public_ids)

        result = db.products.delete_many({"_id": {"$in": product_ids}})
        db.reviews.delete_many({"product_id": {"$in": product_ids}})
        db.questions.delete_many({"product_id": {"$in": product_ids}})
        return result.deleted_count

    # --- Error handlers ---

    @app.errorhandler(PyMongoError)
    def handle_data_store_error(exc):
        app.logger.exception("Data store request failed: %s", exc)
        return (
            jsonify({"message": "The data store is unavailable.", "error": str(exc)}),
            500,
        )

    # --- ROUTES ---

    @app.route("/health")
    def health():
        return {"status": "ok"}, 200

    # Accounts
    @app.route("/api/auth/register", methods=["POST"])
    def register():
        payload = request_payload()
        email = normalize_email(payload.get("email"))
        name = normalize_name(payload.get("name") or payload.get("username"))
        password = str(payload.get("password", ""))
        _, raw_confirm = pick_alias(payload, ("confirm_password", "confirmPassword"))
        confirm_password = str(raw_confirm or "")
        phone = str(payload.get("phone") or payload.get("phoneNumber") or "").strip()

        if not email or not name or not password or not confirm_password:
            return jsonify({"message": "Please enter all required fields"}), 400
        if password != confirm_password:
            return jsonify({"message": "Passwords do not match"}), 400
        if db.users.find_one({"email": email}):
            return jsonify({"message": "User already exists"}), 400

        user_document = {
            "email": email,
            "name": name,
            "password": bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()),
            "role": "admin" if email == default_admin_email else "standard",
            "created_at": datetime.utcnow(),
        }
        if phone:
            user_document["phone"] = phone

        try:
            insert_result = db.users.insert_one(user_document)
        except DuplicateKeyError:
            return jsonify({"message": "User already exists"}), 400

        created_user = db.users.find_one({"_id": insert_result.inserted_id})
        return (
            jsonify(
                {
                    "message": "User registered successfully",
                    "user": serialize_user(created_user),
                }
            ),
            201,
        )

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        payload = request_payload()
        email = normalize_email(payload.get("email"))
        password = str(payload.get("password", ""))

        if not email or not password:
            return jsonify({"message": "Email and password are required."}), 400

        user = db.users.find_one({"email": email})
        if not user or not bcrypt.checkpw(password.encode("utf-8"), user["password"]):
            return jsonify({"message": "Invalid credentials"}), 401

        db.users.update_one(
            {"_id": user["_id"]},
            {"$set": {"last_login_at": datetime.utcnow()}},
        )

        token = create_access_token(identity=email)
        return jsonify({"access_token": token, "user": serialize_user(user)})

    @app.route("/api/auth/profile", methods=["GET"])
    @jwt_required()
    def get_profile():
        current_user, user_error = require_current_user()
        if user_error:
            return user_error
        return jsonify({"user": serialize_user(current_user)})

    @app.route("/api/auth/request-otp", methods=["POST"])
    def request_profile_otp():
        payload = request_payload()
        email = normalize_email(payload.get("email"))
        if not email:
            return jsonify({"message": "Email required"}), 400

        user = db.users.find_one({"email": email})
        if not user:
            return jsonify({"message": "User not found"}), 404

        _, update_data = pick_alias(payload, ("update_data", "updateData"))
        otp = otp_store.issue(email, update_data if isinstance(update_data, dict) else {})
        sent, error_details = send_otp_email(
            email,
            otp,
            sender_email=app.config["OTP_SENDER_EMAIL"],
            api_key=app.config["RESEND_API_KEY"],
            expiration_minutes=app.config["OTP_EXPIRATION_MINUTES"],
        )
        if not sent:
            otp_store.discard(email)
            app.logger.error(
                "OTP dispatch failed for %s: %s", email, error_details or "Unknown error"
            )
            return (
                jsonify({"message": "Failed to send OTP", "error": error_details}),
                502,
            )

        return jsonify(
            {
                "message": "OTP sent to email",
                "expires_in_seconds": app.config["OTP_EXPIRATION_MINUTES"] * 60,
                "otp_length": otp_store.code_length,
            }
        )

    @app.route("/api/auth/verify-otp", methods=["POST"])
    def verify_profile_otp():
        payload = request_payload()
        email = normalize_email(payload.get("email"))
        otp = str(payload.get("otp", "")).strip()
        if not email or not otp:
            return jsonify({"message": "Email and OTP are required."}), 400

        try:
            stored_update = otp_store.verify(email, otp)
        except OtpError as exc:
            return jsonify({"message": str(exc)}), 400

        user = db.users.find_one({"email": email})
        if not user:
            otp_store.discard(email)
            return jsonify({"message": "User not found"}), 404

        _, update_data = pick_alias(payload, ("update_data", "updateData"))
        if not isinstance(update_data, dict) or not update_data:
            update_data = stored_update
        if not update_data:
            return jsonify({"message": "OTP verified", "otp_valid": True})

        updates: Dict[str, object] = {}
        if update_data.get("password"):
            updates["password"] = bcrypt.hashpw(
                str(update_data["password"]).encode("utf-8"), bcrypt.gensalt()
            )
        name_value = normalize_name(update_data.get("name") or update_data.get("username"))
        if name_value:
            updates["name"] = name_value
        phone_value = str(update_data.get("phone") or update_data.get("phoneNumber") or "").strip()
        if phone_value:
            updates["phone"] = phone_value

        if not updates:
            return jsonify({"message": "No supported profile fields were provided."}), 400

        updates["updated_at"] = datetime.utcnow()
        db.users.update_one({"_id": user["_id"]}, {"$set": updates})
        otp_store.discard(email)

        updated_user = db.users.find_one({"_id": user["_id"]})
        return jsonify(
            {"message": "Profile updated successfully", "user": serialize_user(updated_user)}
        )

    @app.route("/api/auth/avatar", methods=["POST"])
    @jwt_required()
    def upload_avatar():
        current_user, user_error = require_current_user()
        if user_error:
            return user_error

        uploaded, upload_error = upload_request_image(
            f"users/{current_user['_id']}/avatars",
            transformation=[{"width": 300, "height": 300, "crop": "limit"}],
        )
        if upload_error:
            return upload_error

        previous_public_id = current_user.get("avatar_public_id")
        db.users.update_one(
            {"_id": current_user["_id"]},
            {
                "$set": {
                    "avatar_url": uploaded["url"],
                    "avatar_public_id": uploaded["public_id"],
                }
            },
        )
        if previous_public_id and previous_public_id != uploaded["public_id"]:
            destroy_hosted_images([previous_public_id])

        updated_user = db.users.find_one({"_id": current_user["_id"]})
        return jsonify({"message": "Avatar updated", "user": serialize_user(updated_user)})

    @app.route("/api/auth/users", methods=["GET"])
    @jwt_required()
    def list_users():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error
        users = [serialize_user(document) for document in db.users.find().sort("created_at", -1)]
        return jsonify({"users": users})

    @app.route("/api/auth/users/<user_id>/role", methods=["PUT"])
    @jwt_required()
    def update_user_role(user_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        target_user, load_error = fetch_document(db.users, user_id, "user")
        if load_error:
            return load_error

        payload = request_payload()
        requested_role = str(payload.get("role", "")).strip().lower()
        if requested_role not in ALLOWED_USER_ROLES:
            return jsonify({"message": "Role must be either `admin` or `standard`."}), 400

        db.users.update_one({"_id": target_user["_id"]}, {"$set": {"role": requested_role}})
        updated_user = db.users.find_one({"_id": target_user["_id"]})
        return jsonify({"message": "User role updated", "user": serialize_user(updated_user)})

    # Categories
    @app.route("/api/categories", methods=["GET"])
    def list_categories():
        category_documents = list(
            db.categories.find({"visibility": {"$ne": VISIBILITY_HIDDEN}}).sort("name", 1)
        )
        product_counts = count_products_by("category_id")
        return jsonify(
            {
                "categories": [
                    serialize_category(document, product_counts=product_counts)
                    for document in category_documents
                ]
            }
        )

    @app.route("/api/categories/popular", methods=["GET"])
    def list_popular_categories():
        category_documents = list(
            db.categories.find(
                {"is_popular": True, "visibility": {"$ne": VISIBILITY_HIDDEN}}
            ).sort("name", 1)
        )
        return jsonify(
            {"categories": [serialize_category(document) for document in category_documents]}
        )

    @app.route("/api/categories/id/<category_id>", methods=["GET"])
    def get_category_by_id(category_id: str):
        category_document, load_error = fetch_document(db.categories, category_id, "category")
        if load_error:
            return load_error
        return jsonify({"category": serialize_category(category_document)})

    @app.route("/api/categories/slug/<slug>", methods=["GET"])
    def get_category_by_slug(slug: str):
        category_document = db.categories.find_one({"slug": slug.lower()})
        if not category_document:
            return jsonify({"message": "Category not found."}), 404
        return jsonify({"category": serialize_category(category_document)})

    def normalize_category_payload(payload: Dict, partial: bool = False, exclude_id=None):
        document: Dict[str, object] = {}
        if "name" in payload or not partial:
            name_value = normalize_name(payload.get("name"))
            if len(name_value) < 2:
                return None, "Please provide a category name with at least two characters."
            document["name"] = name_value
            document["slug"] = slugify(name_value)
            if slug_taken(db.categories, document["slug"], exclude_id):
                return None, "A category with this name already exists."
        if "description" in payload:
            document["description"] = str(payload.get("description") or "").strip()
        present, raw_parent = pick_alias(payload, ("parent_id", "parent"))
        if present:
            if raw_parent:
                parent_id, parent_error = resolve_reference(db.categories, raw_parent, "parent category")
                if parent_error:
                    return None, parent_error
                if exclude_id is not None and parent_id == exclude_id:
                    return None, "A category cannot be its own parent."
                document["parent_id"] = parent_id
            else:
                document["parent_id"] = None
        for field, aliases in (
            ("image", ("image",)),
            ("image_public_id", ("image_public_id", "imagePublicId")),
        ):
            present, value = pick_alias(payload, aliases)
            if present:
                document[field] = str(value or "").strip()
        if "visibility" in payload:
            document["visibility"] = normalize_visibility(payload.get("visibility"))
        present, raw_popular = pick_alias(payload, ("is_popular", "isPopular"))
        if present:
            document["is_popular"] = parse_bool(raw_popular)
        return document, None

    @app.route("/api/categories", methods=["POST"])
    @jwt_required()
    def create_category():
        current_user, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        document, payload_error = normalize_category_payload(request_payload())
        if payload_error:
            status = 409 if "already exists" in payload_error else 400
            return jsonify({"message": payload_error}), status

        document.setdefault("visibility", VISIBILITY_VISIBLE)
        document.setdefault("is_popular", False)
        document.setdefault("parent_id", None)
        document["created_by"] = current_user["_id"]
        document["created_at"] = datetime.utcnow()
        try:
            insert_result = db.categories.insert_one(document)
        except DuplicateKeyError:
            return jsonify({"message": "A category with this name already exists."}), 409

        created = db.categories.find_one({"_id": insert_result.inserted_id})
        return (
            jsonify({"message": "Category created successfully.", "category": serialize_category(created)}),
            201,
        )

    @app.route("/api/categories/<category_id>", methods=["PUT"])
    @jwt_required()
    def update_category(category_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        category_document, load_error = fetch_document(db.categories, category_id, "category")
        if load_error:
            return load_error

        updates, payload_error = normalize_category_payload(
            request_payload(), partial=True, exclude_id=category_document["_id"]
        )
        if payload_error:
            status = 409 if "already exists" in payload_error else 400
            return jsonify({"message": payload_error}), status

        previous_image_id = category_document.get("image_public_id")
        if updates:
            updates["updated_at"] = datetime.utcnow()
            db.categories.update_one({"_id": category_document["_id"]}, {"$set": updates})
        if (
            "image_public_id" in updates
            and previous_image_id
            and previous_image_id != updates["image_public_id"]
        ):
            destroy_hosted_images([previous_image_id])

        updated = db.categories.find_one({"_id": category_document["_id"]})
        return jsonify({"message": "Category updated successfully.", "category": serialize_category(updated)})

    @app.route("/api/categories/<category_id>", methods=["DELETE"])
    @jwt_required()
    def delete_category(category_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        category_document, load_error = fetch_document(db.categories, category_id, "category")
        if load_error:
            return load_error

        category_object_id = category_document["_id"]
        db.categories.delete_one({"_id": category_object_id})
        db.categories.update_many(
            {"parent_id": category_object_id}, {"$set": {"parent_id": None}}
        )
        db.products.update_many(
            {"category_id": category_object_id}, {"$unset": {"category_id": ""}}
        )
        destroy_hosted_images([category_document.get("image_public_id")])

        return jsonify(
            {
                "message": f'"{category_document.get("name", "Category")}" has been removed from the catalog.',
                "category": {"id": str(category_object_id)},
            }
        )

    @app.route("/api/categories/<category_id>/toggle-visibility", methods=["PATCH"])
    @jwt_required()
    def toggle_category_visibility(category_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        category_document, load_error = fetch_document(db.categories, category_id, "category")
        if load_error:
            return load_error

        current_state = normalize_visibility(category_document.get("visibility"))
        next_state = VISIBILITY_VISIBLE if current_state == VISIBILITY_HIDDEN else VISIBILITY_HIDDEN
        db.categories.update_one(
            {"_id": category_document["_id"]}, {"$set": {"visibility": next_state}}
        )
        updated = db.categories.find_one({"_id": category_document["_id"]})
        return jsonify({"message": f"Category is now {next_state}", "category": serialize_category(updated)})

    @app.route("/api/categories/<category_id>/toggle-popularity", methods=["PATCH"])
    @jwt_required()
    def toggle_category_popularity(category_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        category_document, load_error = fetch_document(db.categories, category_id, "category")
        if load_error:
            return load_error

        db.categories.update_one(
            {"_id": category_document["_id"]},
            {"$set": {"is_popular": not bool(category_document.get("is_popular"))}},
        )
        updated = db.categories.find_one({"_id": category_document["_id"]})
        return jsonify({"category": serialize_category(updated)})

    @app.route("/api/categories/upload", methods=["POST"])
    @jwt_required()
    def upload_category_image():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error
        uploaded, upload_error = upload_request_image("categories")
        if upload_error:
            return upload_error
        return jsonify(uploaded)

    # Brands
    @app.route("/api/brands", methods=["GET"])
    def list_brands():
        brand_documents = list(
            db.brands.find({"visibility": {"$ne": VISIBILITY_HIDDEN}}).sort("name", 1)
        )
        product_counts = count_products_by("brand_id")
        return jsonify(
            {
                "brands": [
                    serialize_brand(document, product_counts=product_counts)
                    for document in brand_documents
                ]
            }
        )

    @app.route("/api/brands/id/<brand_id>", methods=["GET"])
    def get_brand_by_id(brand_id: str):
        brand_document, load_error = fetch_document(db.brands, brand_id, "brand")
        if load_error:
            return load_error
        return jsonify({"brand": serialize_brand(brand_document)})

    @app.route("/api/brands/slug/<slug>", methods=["GET"])
    def get_brand_by_slug(slug: str):
        brand_document = db.brands.find_one({"slug": slug.lower()})
        if not brand_document:
            return jsonify({"message": "Brand not found."}), 404
        return jsonify({"brand": serialize_brand(brand_document)})

    def normalize_brand_payload(payload: Dict, partial: bool = False, exclude_id=None):
        document: Dict[str, object] = {}
        if "name" in payload or not partial:
            name_value = normalize_name(payload.get("name"))
            if len(name_value) < 2:
                return None, "Please provide a brand name with at least two characters."
            document["name"] = name_value
            document["slug"] = slugify(name_value)
            if slug_taken(db.brands, document["slug"], exclude_id):
                return None, "A brand with this name already exists."
        if "description" in payload:
            document["description"] = str(payload.get("description") or "").strip()
        for field, aliases in (
            ("logo", ("logo",)),
            ("logo_public_id", ("logo_public_id", "logoPublicId")),
        ):
            present, value = pick_alias(payload, aliases)
            if present:
                document[field] = str(value or "").strip()
        if "visibility" in payload:
            document["visibility"] = normalize_visibility(payload.get("visibility"))
        return document, None

    @app.route("/api/brands", methods=["POST"])
    @jwt_required()
    def create_brand():
        current_user, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        document, payload_error = normalize_brand_payload(request_payload())
        if payload_error:
            status = 409 if "already exists" in payload_error else 400
            return jsonify({"message": payload_error}), status

        document.setdefault("visibility", VISIBILITY_VISIBLE)
        document["created_by"] = current_user["_id"]
        document["created_at"] = datetime.utcnow()
        try:
            insert_result = db.brands.insert_one(document)
        except DuplicateKeyError:
            return jsonify({"message": "A brand with this name already exists."}), 409

        created = db.brands.find_one({"_id": insert_result.inserted_id})
        return jsonify({"message": "Brand created successfully.", "brand": serialize_brand(created)}), 201

    @app.route("/api/brands/<brand_id>", methods=["PUT"])
    @jwt_required()
    def update_brand(brand_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        brand_document, load_error = fetch_document(db.brands, brand_id, "brand")
        if load_error:
            return load_error

        updates, payload_error = normalize_brand_payload(
            request_payload(), partial=True, exclude_id=brand_document["_id"]
        )
        if payload_error:
            status = 409 if "already exists" in payload_error else 400
            return jsonify({"message": payload_error}), status

        if updates:
            updates["updated_at"] = datetime.utcnow()
            db.brands.update_one({"_id": brand_document["_id"]}, {"$set": updates})

        updated = db.brands.find_one({"_id": brand_document["_id"]})
        return jsonify({"message": "Brand updated successfully.", "brand": serialize_brand(updated)})

    @app.route("/api/brands/<brand_id>", methods=["DELETE"])
    @jwt_required()
    def delete_brand(brand_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        brand_document, load_error = fetch_document(db.brands, brand_id, "brand")
        if load_error:
            return load_error

        db.brands.delete_one({"_id": brand_document["_id"]})
        db.products.update_many({"brand_id": brand_document["_id"]}, {"$unset": {"brand_id": ""}})
        destroy_hosted_images([brand_document.get("logo_public_id")])
        return jsonify({"message": "Brand deleted successfully.", "brand": {"id": str(brand_document["_id"])}})

    @app.route("/api/brands/<brand_id>/toggle", methods=["PATCH"])
    @jwt_required()
    def toggle_brand_visibility(brand_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        brand_document, load_error = fetch_document(db.brands, brand_id, "brand")
        if load_error:
            return load_error

        current_state = normalize_visibility(brand_document.get("visibility"))
        next_state = VISIBILITY_VISIBLE if current_state == VISIBILITY_HIDDEN else VISIBILITY_HIDDEN
        db.brands.update_one({"_id": brand_document["_id"]}, {"$set": {"visibility": next_state}})
        updated = db.brands.find_one({"_id": brand_document["_id"]})
        return jsonify({"message": f"Brand is now {next_state}", "brand": serialize_brand(updated)})

    @app.route("/api/brands/upload", methods=["POST"])
    @jwt_required()
    def upload_brand_logo():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error
        uploaded, upload_error = upload_request_image("brands")
        if upload_error:
            return upload_error
        return jsonify(uploaded)

    @app.route("/api/brands/<brand_id>/logo", methods=["POST"])
    @jwt_required()
    def update_brand_logo(brand_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        brand_document, load_error = fetch_document(db.brands, brand_id, "brand")
        if load_error:
            return load_error

        uploaded, upload_error = upload_request_image("brands")
        if upload_error:
            return upload_error

        db.brands.update_one(
            {"_id": brand_document["_id"]},
            {"$set": {"logo": uploaded["url"], "logo_public_id": uploaded["public_id"]}},
        )
        destroy_hosted_images([brand_document.get("logo_public_id")])
        updated = db.brands.find_one({"_id": brand_document["_id"]})
        return jsonify({"message": "Brand logo updated.", "brand": serialize_brand(updated)})

    # Products
    def build_product_query(include_hidden: bool) -> Dict[str, object]:
        query: Dict[str, object] = {}

        category_slug = str(request.args.get("category", "")).strip().lower()
        if category_slug:
            category_document = db.categories.find_one({"slug": category_slug})
            if category_document:
                query["category_id"] = category_document["_id"]

        if include_hidden:
            brand_slug = str(request.args.get("brand", "")).strip().lower()
            if brand_slug:
                brand_document = db.brands.find_one({"slug": brand_slug})
                if brand_document:
                    query["brand_id"] = brand_document["_id"]

        search = str(request.args.get("search", "")).strip()
        if search:
            query["name"] = {"$regex": re.escape(search), "$options": "i"}

        if not include_hidden:
            price_filter: Dict[str, float] = {}
            min_price = safe_float(request.args.get("min_price") or request.args.get("minPrice"), None)
            max_price = safe_float(request.args.get("max_price") or request.args.get("maxPrice"), None)
            if min_price is not None:
                price_filter["$gte"] = min_price
            if max_price is not None:
                price_filter["$lte"] = max_price
            if price_filter:
                query["price"] = price_filter

            for argument, field in (
                ("featured", "is_featured"),
                ("new", "is_new"),
                ("trending", "is_trending"),
            ):
                if str(request.args.get(argument, "")).strip().lower() == "true":
                    query[field] = True

            query["visibility"] = {"$ne": VISIBILITY_HIDDEN}

        return query

    def paginated_products(include_hidden: bool):
        page, limit = read_pagination()
        query = build_product_query(include_hidden)
        sorts = ADMIN_PRODUCT_SORTS if include_hidden else PUBLIC_PRODUCT_SORTS
        sort = sorts.get(str(request.args.get("sort", "")).strip(), [("created_at", -1)])

        product_docs = list(
            db.products.find(query).sort(sort).skip((page - 1) * limit).limit(limit)
        )
        total = db.products.count_documents(query)
        return jsonify(
            {
                "products": serialize_products(product_docs),
                "current_page": page,
                "total_pages": math.ceil(total / limit) if total else 0,
                "total": total,
            }
        )

    @app.route("/api/products", methods=["GET"])
    def list_products():
        return paginated_products(include_hidden=False)

    @app.route("/api/products/admin", methods=["GET"])
    @jwt_required()
    def list_products_admin():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error
        return paginated_products(include_hidden=True)

    @app.route("/api/products/nearby", methods=["GET"])
    def get_products_by_nearest_warehouse():
        try:
            latitude = parse_coordinate(request.args.get("lat"), "lat")
            longitude = parse_coordinate(request.args.get("lng"), "lng")
        except CoordinateError as exc:
            return jsonify({"message": str(exc)}), 400

        def load_visible_products(warehouse_id):
            return db.products.find(
                {
                    "warehouses.warehouse_id": ledger_reference(warehouse_id),
                    "visibility": {"$ne": VISIBILITY_HIDDEN},
                }
            )

        nearby = find_nearby_products(
            latitude, longitude, db.warehouses.find(), load_visible_products
        )
        if nearby is None:
            return (
                jsonify({"message": "No warehouse delivers to this location."}),
                404,
            )

        warehouse_id = nearby.warehouse["_id"]
        products = serialize_products(nearby.products)
        for serialized, document in zip(products, nearby.products):
            serialized["warehouse_stock"] = stock_at(document, warehouse_id)

        return jsonify(
            {
                "warehouse": serialize_warehouse(nearby.warehouse),
                "distance_km": round(nearby.distance_km, 3),
                "products": products,
            }
        )

    @app.route("/api/products/category/<slug>", methods=["GET"])
    def list_products_by_category(slug: str):
        category_document = db.categories.find_one({"slug": slug.lower()})
        if not category_document:
            return jsonify({"message": "Category not found"}), 404

        product_docs = list(
            db.products.find(
                {
                    "category_id": category_document["_id"],
                    "visibility": {"$ne": VISIBILITY_HIDDEN},
                }
            ).sort("created_at", -1)
        )
        return jsonify(
            {
                "category": serialize_category(category_document),
                "products": serialize_products(product_docs),
            }
        )

    @app.route("/api/products/slug/<slug>", methods=["GET"])
    def get_product_by_slug(slug: str):
        product_document = db.products.find_one(
            {"slug": slug.lower(), "visibility": {"$ne": VISIBILITY_HIDDEN}}
        )
        if not product_document:
            return jsonify({"message": "Product not found"}), 404
        return jsonify({"product": serialize_product(product_document)})

    @app.route("/api/products/<product_id>", methods=["GET"])
    def get_product(product_id: str):
        product_document, load_error = fetch_document(db.products, product_id, "product")
        if load_error:
            return load_error
        return jsonify({"product": serialize_product(product_document)})

    @app.route("/api/products", methods=["POST"])
    @jwt_required()
    def create_product():
        current_user, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        document, payload_error = normalize_product_payload(request_payload())
        if payload_error:
            return jsonify({"message": payload_error}), 400

        timestamp = datetime.utcnow()
        document.update(
            {
                "slug": unique_slug(db.products, document["name"]),
                "rating": 0,
                "num_reviews": 0,
                "created_by": current_user["_id"],
                "created_at": timestamp,
                "updated_at": timestamp,
            }
        )
        insert_result = db.products.insert_one(document)
        created = db.products.find_one({"_id": insert_result.inserted_id})
        return (
            jsonify({"message": "Product created successfully.", "product": serialize_product(created)}),
            201,
        )

    @app.route("/api/products/<product_id>", methods=["PUT"])
    @jwt_required()
    def update_product(product_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        product_document, load_error = fetch_document(db.products, product_id, "product")
        if load_error:
            return load_error

        updates, payload_error = normalize_product_payload(request_payload(), partial=True)
        if payload_error:
            return jsonify({"message": payload_error}), 400

        price_value = updates.get("price", product_document.get("price"))
        sale_value = updates.get("sale_price", product_document.get("sale_price"))
        if sale_value and price_value is not None and safe_float(sale_value) >= safe_float(price_value):
            return jsonify({"message": "Sale price must be lower than the standard price."}), 400

        if "name" in updates and updates["name"] != product_document.get("name"):
            updates["slug"] = unique_slug(
                db.products, updates["name"], exclude_id=product_document["_id"]
            )
        updates["updated_at"] = datetime.utcnow()
        db.products.update_one({"_id": product_document["_id"]}, {"$set": updates})

        updated = db.products.find_one({"_id": product_document["_id"]})
        return jsonify({"message": "Product updated successfully.", "product": serialize_product(updated)})

    @app.route("/api/products/<product_id>", methods=["DELETE"])
    @jwt_required()
    def delete_product(product_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        product_document, load_error = fetch_document(db.products, product_id, "product")
        if load_error:
            return load_error

        delete_products([product_document])
        return jsonify({"message": "Product and its reviews deleted"})

    @app.route("/api/products/bulk", methods=["POST"])
    @jwt_required()
    def bulk_products_operation():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        payload = request_payload()
        operation = str(payload.get("operation", "")).strip().lower()
        _, raw_ids = pick_alias(payload, ("product_ids", "productIds"))
        if not operation or not isinstance(raw_ids, list) or not raw_ids:
            return jsonify({"message": "Operation type and product IDs array are required"}), 400

        product_ids: List[ObjectId] = []
        for raw_id in raw_ids:
            object_id = normalize_object_id_value(raw_id)
            if object_id is None:
                return jsonify({"message": f"Invalid product identifier: {raw_id}"}), 400
            product_ids.append(object_id)

        if operation == "delete":
            deleted = delete_products(list(db.products.find({"_id": {"$in": product_ids}})))
            return jsonify({"message": f"{deleted} products deleted successfully", "deleted": deleted})

        if operation == "update":
            _, update_data = pick_alias(payload, ("update_data", "updateData"))
            if not isinstance(update_data, dict) or not update_data:
                return jsonify({"message": "Update data is required for update operation"}), 400
            if "name" in update_data or "slug" in update_data:
                return jsonify({"message": "Bulk updates cannot rename products."}), 400

            updates, payload_error = normalize_product_payload(update_data, partial=True)
            if payload_error:
                return jsonify({"message": payload_error}), 400
            if not updates:
                return jsonify({"message": "No supported product fields were provided."}), 400

            updates["updated_at"] = datetime.utcnow()
            result = db.products.update_many({"_id": {"$in": product_ids}}, {"$set": updates})
            return jsonify(
                {
                    "message": f"{result.modified_count} products updated successfully",
                    "modified": result.modified_count,
                }
            )

        return (
            jsonify({"message": "Invalid operation type. Supported operations: delete, update"}),
            400,
        )

    @app.route("/api/products/<product_id>/toggle-visibility", methods=["PATCH"])
    @jwt_required()
    def toggle_product_visibility(product_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        product_document, load_error = fetch_document(db.products, product_id, "product")
        if load_error:
            return load_error

        current_state = normalize_visibility(product_document.get("visibility"))
        next_state = VISIBILITY_VISIBLE if current_state == VISIBILITY_HIDDEN else VISIBILITY_HIDDEN
        db.products.update_one(
            {"_id": product_document["_id"]},
            {"$set": {"visibility": next_state, "updated_at": datetime.utcnow()}},
        )
        return jsonify({"message": f"Product is now {next_state}", "visibility": next_state})

    def toggle_product_flag(product_id: str, flag: str, enabled_label: str, disabled_label: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        product_document, load_error = fetch_document(db.products, product_id, "product")
        if load_error:
            return load_error

        next_value = not bool(product_document.get(flag, PRODUCT_FLAG_DEFAULTS[flag]))
        db.products.update_one(
            {"_id": product_document["_id"]},
            {"$set": {flag: next_value, "updated_at": datetime.utcnow()}},
        )
        return jsonify(
            {
                "message": f"Product is {enabled_label if next_value else disabled_label}",
                flag: next_value,
            }
        )

    @app.route("/api/products/<product_id>/toggle-featured", methods=["PATCH"])
    @jwt_required()
    def toggle_product_featured(product_id: str):
        return toggle_product_flag(product_id, "is_featured", "now featured", "no longer featured")

    @app.route("/api/products/<product_id>/toggle-trending", methods=["PATCH"])
    @jwt_required()
    def toggle_product_trending(product_id: str):
        return toggle_product_flag(product_id, "is_trending", "now trending", "no longer trending")

    @app.route("/api/products/upload", methods=["POST"])
    @jwt_required()
    def upload_product_image():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error
        uploaded, upload_error = upload_request_image("products")
        if upload_error:
            return upload_error
        return jsonify(uploaded)

    # Warehouses
    @app.route("/api/warehouses", methods=["GET"])
    def list_warehouses():
        return jsonify(
            {"warehouses": [serialize_warehouse(document) for document in db.warehouses.find()]}
        )

    @app.route("/api/warehouses", methods=["POST"])
    @jwt_required()
    def create_warehouse():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        document, payload_error = normalize_warehouse_payload(request_payload())
        if payload_error:
            return jsonify({"message": payload_error}), 400

        timestamp = datetime.utcnow()
        document["created_at"] = timestamp
        document["updated_at"] = timestamp
        insert_result = db.warehouses.insert_one(document)
        created = db.warehouses.find_one({"_id": insert_result.inserted_id})
        return jsonify({"warehouse": serialize_warehouse(created)}), 201

    @app.route("/api/warehouses/<warehouse_id>", methods=["PUT"])
    @jwt_required()
    def update_warehouse(warehouse_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        warehouse_document, load_error = fetch_document(db.warehouses, warehouse_id, "warehouse")
        if load_error:
            return load_error

        updates, payload_error = normalize_warehouse_payload(request_payload(), partial=True)
        if payload_error:
            return jsonify({"message": payload_error}), 400

        updates["updated_at"] = datetime.utcnow()
        db.warehouses.update_one({"_id": warehouse_document["_id"]}, {"$set": updates})
        updated = db.warehouses.find_one({"_id": warehouse_document["_id"]})
        return jsonify({"warehouse": serialize_warehouse(updated)})

    @app.route("/api/warehouses/<warehouse_id>", methods=["DELETE"])
    @jwt_required()
    def delete_warehouse(warehouse_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        warehouse_document, load_error = fetch_document(db.warehouses, warehouse_id, "warehouse")
        if load_error:
            return load_error

        # Stock ledger entries pointing here are left in place.
        db.warehouses.delete_one({"_id": warehouse_document["_id"]})
        return jsonify({"message": "Warehouse deleted"})

    @app.route("/api/warehouses/<warehouse_id>/inventory", methods=["GET"])
    @jwt_required()
    def get_warehouse_inventory(warehouse_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        warehouse_document, load_error = fetch_document(db.warehouses, warehouse_id, "warehouse")
        if load_error:
            return load_error

        inventory = []
        for product_document in db.products.find(
            {"warehouses.warehouse_id": ledger_reference(warehouse_document["_id"])}
        ):
            inventory.append(
                {
                    "product_id": str(product_document["_id"]),
                    "name": product_document.get("name", ""),
                    "stock": stock_at(product_document, warehouse_document["_id"]) or 0,
                }
            )
        return jsonify(
            {"warehouse": serialize_warehouse(warehouse_document), "inventory": inventory}
        )

    @app.route("/api/pincode/<code>", methods=["GET"])
    def lookup_pincode(code: str):
        coordinates = PINCODE_COORDINATES.get(str(code).strip())
        if not coordinates:
            return jsonify({"message": "Pin code not found"}), 404
        return jsonify(coordinates)

    # Reviews
    @app.route("/api/reviews", methods=["POST"])
    @jwt_required()
    def submit_review():
        current_user, user_error = require_current_user()
        if user_error:
            return user_error

        payload = request_payload()
        _, raw_product = pick_alias(payload, ("product_id", "product", "productId"))
        comment = str(payload.get("comment", "")).strip()
        rating = safe_positive_int(payload.get("rating"), 0)
        if not raw_product or not comment or not rating:
            return jsonify({"message": "All fields are required."}), 400
        if rating > 5:
            return jsonify({"message": "Rating must be between 1 and 5."}), 400

        product_document, load_error = fetch_document(db.products, raw_product, "product")
        if load_error:
            return load_error
        if product_document.get("allow_reviews") is False:
            return jsonify({"message": "Reviews are disabled for this product."}), 400

        review_document = {
            "product_id": product_document["_id"],
            "user_id": current_user["_id"],
            "user_name": current_user.get("name", "") or "",
            "rating": rating,
            "comment": comment,
            "status": "pending",
            "is_custom_store": False,
            "created_at": datetime.utcnow(),
        }
        insert_result = db.reviews.insert_one(review_document)
        review_document["_id"] = insert_result.inserted_id
        return jsonify({"review": serialize_review(review_document)}), 201

    @app.route("/api/reviews/product/<product_id>", methods=["GET"])
    def list_product_reviews(product_id: str):
        product_object_id, id_error = parse_object_id(product_id, "product")
        if id_error:
            return id_error
        reviews = db.reviews.find(
            {"product_id": product_object_id, "status": "approved"}
        ).sort("created_at", -1)
        return jsonify({"reviews": [serialize_review(document) for document in reviews]})

    @app.route("/api/reviews/customer-stories", methods=["GET"])
    def list_customer_stories():
        reviews = db.reviews.find(
            {"status": "approved", "is_custom_store": True}
        ).sort("created_at", -1)
        return jsonify({"reviews": [serialize_review(document) for document in reviews]})

    @app.route("/api/reviews", methods=["GET"])
    @jwt_required()
    def list_all_reviews():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error
        reviews = db.reviews.find().sort("created_at", -1)
        return jsonify({"reviews": [serialize_review(document) for document in reviews]})

    @app.route("/api/reviews/<review_id>/approve", methods=["PATCH"])
    @jwt_required()
    def approve_review(review_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        review_document, load_error = fetch_document(db.reviews, review_id, "review")
        if load_error:
            return load_error

        payload = request_payload()
        status = str(payload.get("status") or "approved").strip().lower()
        if status not in REVIEW_STATUSES:
            return jsonify({"message": "Status must be pending, approved, or rejected."}), 400

        db.reviews.update_one({"_id": review_document["_id"]}, {"$set": {"status": status}})
        recompute_product_rating(review_document["product_id"])
        updated = db.reviews.find_one({"_id": review_document["_id"]})
        return jsonify({"review": serialize_review(updated)})

    @app.route("/api/reviews/<review_id>/custom-store", methods=["PATCH"])
    @jwt_required()
    def toggle_review_custom_store(review_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        review_document, load_error = fetch_document(db.reviews, review_id, "review")
        if load_error:
            return load_error

        db.reviews.update_one(
            {"_id": review_document["_id"]},
            {"$set": {"is_custom_store": not bool(review_document.get("is_custom_store"))}},
        )
        updated = db.reviews.find_one({"_id": review_document["_id"]})
        return jsonify({"review": serialize_review(updated)})

    @app.route("/api/reviews/<review_id>", methods=["DELETE"])
    @jwt_required()
    def delete_review(review_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        review_document, load_error = fetch_document(db.reviews, review_id, "review")
        if load_error:
            return load_error

        db.reviews.delete_one({"_id": review_document["_id"]})
        recompute_product_rating(review_document["product_id"])
        return jsonify({"message": "Review deleted"})

    # Questions
    @app.route("/api/questions", methods=["POST"])
    @jwt_required()
    def submit_question():
        current_user, user_error = require_current_user()
        if user_error:
            return user_error

        payload = request_payload()
        _, raw_product = pick_alias(payload, ("product_id", "productId", "product"))
        question_text = str(payload.get("question", "")).strip()
        if not raw_product or not question_text:
            return jsonify({"message": "A product and a question are required."}), 400

        product_document, load_error = fetch_document(db.products, raw_product, "product")
        if load_error:
            return load_error

        question_document = {
            "product_id": product_document["_id"],
            "user_id": current_user["_id"],
            "user_name": current_user.get("name", "") or "",
            "question": question_text,
            "answer": "",
            "is_approved": False,
            "created_at": datetime.utcnow(),
        }
        insert_result = db.questions.insert_one(question_document)
        question_document["_id"] = insert_result.inserted_id
        return jsonify({"question": serialize_question(question_document)}), 201

    @app.route("/api/questions/product/<product_id>", methods=["GET"])
    def list_product_questions(product_id: str):
        product_object_id, id_error = parse_object_id(product_id, "product")
        if id_error:
            return id_error
        questions = db.questions.find(
            {"product_id": product_object_id, "is_approved": True}
        ).sort("created_at", -1)
        return jsonify({"questions": [serialize_question(document) for document in questions]})

    @app.route("/api/questions", methods=["GET"])
    @jwt_required()
    def list_all_questions():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error
        questions = db.questions.find().sort("created_at", -1)
        return jsonify({"questions": [serialize_question(document) for document in questions]})

    @app.route("/api/questions/<question_id>/answer", methods=["PUT"])
    @jwt_required()
    def answer_question(question_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        question_document, load_error = fetch_document(db.questions, question_id, "question")
        if load_error:
            return load_error

        answer = str(request_payload().get("answer", "")).strip()
        if not answer:
            return jsonify({"message": "An answer is required."}), 400

        db.questions.update_one(
            {"_id": question_document["_id"]},
            {"$set": {"answer": answer, "answered_at": datetime.utcnow()}},
        )
        updated = db.questions.find_one({"_id": question_document["_id"]})
        return jsonify({"question": serialize_question(updated)})

    @app.route("/api/questions/<question_id>/approve", methods=["PUT"])
    @jwt_required()
    def approve_question(question_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        question_document, load_error = fetch_document(db.questions, question_id, "question")
        if load_error:
            return load_error

        _, raw_approved = pick_alias(request_payload(), ("is_approved", "isApproved"))
        db.questions.update_one(
            {"_id": question_document["_id"]},
            {"$set": {"is_approved": parse_bool(raw_approved, True)}},
        )
        updated = db.questions.find_one({"_id": question_document["_id"]})
        return jsonify({"question": serialize_question(updated)})

    @app.route("/api/questions/<question_id>", methods=["DELETE"])
    @jwt_required()
    def delete_question(question_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        question_document, load_error = fetch_document(db.questions, question_id, "question")
        if load_error:
            return load_error

        db.questions.delete_one({"_id": question_document["_id"]})
        return jsonify({"message": "Question removed"})

    # Banners
    @app.route("/api/banners", methods=["GET"])
    def list_banners():
        banners = db.banners.find().sort("created_at", -1)
        return jsonify({"banners": [serialize_banner(document) for document in banners]})

    @app.route("/api/banners/active", methods=["GET"])
    def list_active_banners():
        banners = db.banners.find({"show": True}).sort("created_at", -1)
        return jsonify({"banners": [serialize_banner(document) for document in banners]})

    @app.route("/api/banners/upload", methods=["POST"])
    @jwt_required()
    def upload_banner_image():
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error
        uploaded, upload_error = upload_request_image("banners")
        if upload_error:
            return upload_error
        return jsonify({"image_url": uploaded["url"], "public_id": uploaded["public_id"]})

    @app.route("/api/banners", methods=["POST"])
    @jwt_required()
    def create_banner():
        current_user, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        payload = request_payload()
        path = str(payload.get("path", "")).strip()
        if not path:
            return jsonify({"message": "Banner path is required"}), 400
        if not path.startswith(("http://", "https://")):
            return jsonify({"message": "Invalid image URL format"}), 400

        banner_document = {
            "path": path,
            "name": normalize_name(payload.get("name")) or "Unnamed Banner",
            "show": parse_bool(payload.get("show"), True),
            "created_by": current_user["_id"],
            "created_at": datetime.utcnow(),
        }
        insert_result = db.banners.insert_one(banner_document)
        banner_document["_id"] = insert_result.inserted_id
        return jsonify({"banner": serialize_banner(banner_document)}), 201

    @app.route("/api/banners/<banner_id>/toggle", methods=["PATCH"])
    @jwt_required()
    def toggle_banner(banner_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        banner_document, load_error = fetch_document(db.banners, banner_id, "banner")
        if load_error:
            return load_error

        db.banners.update_one(
            {"_id": banner_document["_id"]},
            {"$set": {"show": not bool(banner_document.get("show", True))}},
        )
        updated = db.banners.find_one({"_id": banner_document["_id"]})
        return jsonify({"banner": serialize_banner(updated)})

    @app.route("/api/banners/<banner_id>", methods=["DELETE"])
    @jwt_required()
    def delete_banner(banner_id: str):
        _, admin_error = require_admin_user()
        if admin_error:
            return admin_error

        banner_document, load_error = fetch_document(db.banners, banner_id, "banner")
        if load_error:
            return load_error

        db.banners.delete_one({"_id": banner_document["_id"]})
        return jsonify({"message": "Banner deleted successfully"})

    # Cart and wishlist
    def normalize_saved_items(raw_items, with_quantity: bool):
        if raw_items is None:
            return [], None
        if not isinstance(raw_items, list):
            return None, "Items must be a list."

        items: List[Dict] = []
        positions: Dict[ObjectId, int] = {}
        for raw in raw_items:
            if isinstance(raw, dict):
                _, raw_product = pick_alias(raw, ("product_id", "product", "productId"))
            else:
                raw_product, raw = raw, {}
            product_id = normalize_object_id_value(raw_product)
            if product_id is None:
                return None, f"Invalid product identifier: {raw_product}"

            quantity = safe_positive_int(raw.get("quantity"), 1) if with_quantity else None
            if product_id in positions:
                if with_quantity:
                    items[positions[product_id]]["quantity"] += quantity
                continue
            positions[product_id] = len(items)
            item: Dict[str, object] = {"product_id": product_id}
            if with_quantity:
                item["quantity"] = quantity
            items.append(item)
        return items, None

    def serialize_saved_items(items, with_quantity: bool) -> List[Dict]:
        product_ids = [item["product_id"] for item in items]
        product_map = {
            document["_id"]: document
            for document in db.products.find({"_id": {"$in": product_ids}})
        } if product_ids else {}
        serialized = []
        for item in items:
            entry: Dict[str, object] = {
                "product_id": str(item["product_id"]),
                "product": serialize_product_summary(product_map.get(item["product_id"])),
            }
            if with_quantity:
                entry["quantity"] = int(item.get("quantity") or 1)
            serialized.append(entry)
        return serialized

    def register_saved_list_routes(name: str, collection, with_quantity: bool):
        def load_list():
            current_user, user_error = require_current_user()
            if user_error:
                return None, None, user_error
            document = collection.find_one({"user_id": current_user["_id"]}) or {}
            return current_user, list(document.get("items") or []), None

        def save_list(user_id, items):
            collection.update_one(
                {"user_id": user_id},
                {"$set": {"items": items, "updated_at": datetime.utcnow()}},
                upsert=True,
            )

        @jwt_required()
        def get_saved_list():
            _, items, load_error = load_list()
            if load_error:
                return load_error
            return jsonify({"items": serialize_saved_items(items, with_quantity)})

        @jwt_required()
        def replace_saved_list():
            current_user, _, load_error = load_list()
            if load_error:
                return load_error
            items, items_error = normalize_saved_items(
                request_payload().get("items"), with_quantity
            )
            if items_error:
                return jsonify({"message": items_error}), 400
            save_list(current_user["_id"], items)
            return jsonify({"success": True, "items": serialize_saved_items(items, with_quantity)})

        @jwt_required()
        def merge_saved_list():
            current_user, existing_items, load_error = load_list()
            if load_error:
                return load_error
            incoming, items_error = normalize_saved_items(
                request_payload().get("items"), with_quantity
            )
            if items_error:
                return jsonify({"message": items_error}), 400

            merged = [dict(item) for item in existing_items]
            positions = {item["product_id"]: index for index, item in enumerate(merged)}
            for item in incoming:
                if item["product_id"] in positions:
                    if with_quantity:
                        existing = merged[positions[item["product_id"]]]
                        existing["quantity"] = int(existing.get("quantity") or 0) + item["quantity"]
                    continue
                positions[item["product_id"]] = len(merged)
                merged.append(item)

            save_list(current_user["_id"], merged)
            return jsonify({"success": True, "items": serialize_saved_items(merged, with_quantity)})

        app.add_url_rule(f"/api/{name}", f"get_{name}", get_saved_list, methods=["GET"])
        app.add_url_rule(f"/api/{name}", f"replace_{name}", replace_saved_list, methods=["POST"])
        app.add_url_rule(f"/api/{name}/merge", f"merge_{name}", merge_saved_list, methods=["POST"])

    register_saved_list_routes("cart", db.carts, with_quantity=True)
    register_saved_list_routes("wishlist", db.wishlists, with_quantity=False)

    return app
