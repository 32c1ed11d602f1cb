"""Mapper service — translates persisted property rows to PropertyEntity and back.

Handles:
- Scalar coercion: "250000" → 250000.0, "yes"/1 → True, ISO strings → datetime
- Media lists: canonical arrays, JSON-encoded strings and single legacy URLs
- Enum normalization: "online"/"active" → published, "to let" → rent, ...
- Country name → ISO code via a static alias table
- Legacy column aliases (zip_code, property_size_sqm, agent_*, deposit_amount)

`to_entity` is total: any mapping with an `id` yields a valid entity, and
malformed values degrade to defaults instead of raising. `to_record` is
partial: only attributes present on the input produce columns, so partial
updates never clobber unrelated columns.

Several producers have written this table over time, so one concept can live
under several columns. Media extraction is an ordered list of strategies; the
first that yields URLs wins. The order is part of the contract.
"""
import json
import re
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

from estatedesk.core.exceptions import BackendError
from estatedesk.core.logging import get_logger
from estatedesk.schemas.property_schema import (
    Address,
    Analytics,
    Area,
    Contact,
    ListingType,
    MediaItem,
    Price,
    PropertyEntity,
    PropertyStatus,
    PropertyType,
    Rooms,
)

if TYPE_CHECKING:
    from estatedesk.services.location_service import LocationLookupService

logger = get_logger(__name__)


# ── Country codes ──

_COUNTRY_CODES: Dict[str, str] = {
    "united kingdom": "GB",
    "uk": "GB",
    "u.k.": "GB",
    "gb": "GB",
    "great britain": "GB",
    "britain": "GB",
    "england": "GB",
    "scotland": "GB",
    "wales": "GB",
    "northern ireland": "GB",
    "ireland": "IE",
    "republic of ireland": "IE",
    "ie": "IE",
    "united states": "US",
    "united states of america": "US",
    "usa": "US",
    "us": "US",
    "america": "US",
    "canada": "CA",
    "ca": "CA",
    "india": "IN",
    "in": "IN",
    "bharat": "IN",
    "united arab emirates": "AE",
    "uae": "AE",
    "ae": "AE",
    "australia": "AU",
    "au": "AU",
    "new zealand": "NZ",
    "singapore": "SG",
    "france": "FR",
    "germany": "DE",
    "spain": "ES",
    "portugal": "PT",
    "italy": "IT",
    "netherlands": "NL",
    "the netherlands": "NL",
    "south africa": "ZA",
}


def resolve_country_code(name: Optional[str]) -> str:
    """Map a country name or alias to its ISO code; unknown names give ''."""
    if not name or not isinstance(name, str):
        return ""
    return _COUNTRY_CODES.get(name.strip().lower(), "")


# ── Scalar coercion ──

_TRUE_VALUES = ("yes", "true", "1", "y", "on", "✓", "✔")
_FALSE_VALUES = ("no", "false", "0", "n", "off")
_NUMBER_CLEANUP = re.compile(r"[,\s£$€₹]")

_DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%d/%m/%Y",
    "%Y/%m/%d",
]


def parse_text(raw: Any, default: str = "") -> str:
    if raw is None or isinstance(raw, (dict, list)):
        return default
    return str(raw).strip()


def parse_number(raw: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Parse a number from int/float/numeric string. Anything else → default."""
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        cleaned = _NUMBER_CLEANUP.sub("", raw)
        if not cleaned:
            return default
        try:
            value = float(cleaned)
        except ValueError:
            return default
    else:
        return default
    if value != value or value in (float("inf"), float("-inf")):
        return default
    return value


def parse_count(raw: Any, default: int = 0) -> int:
    """Parse a non-negative integer count; negatives clamp to 0."""
    value = parse_number(raw, None)
    if value is None:
        return default
    return max(0, int(value))


def parse_optional_int(raw: Any) -> Optional[int]:
    value = parse_number(raw, None)
    return int(value) if value is not None else None


def parse_bool(raw: Any, default: bool = False) -> bool:
    """Map truthy markers ('yes', 1, True) to True; unknown values → default."""
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    return default


def parse_date(raw: Any) -> Optional[datetime]:
    """Parse a timestamp; naive values are taken as UTC."""
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if not raw or not isinstance(raw, str):
        return None
    text = raw.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        logger.debug("Failed to parse date: '%s'", raw)
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _parse_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return None


def parse_string_list(raw: Any) -> List[str]:
    """Amenity-style lists: arrays, JSON strings, comma strings or {name: bool} maps."""
    if raw is None:
        return []
    if isinstance(raw, list):
        return [str(v).strip() for v in raw if isinstance(v, (str, int, float)) and str(v).strip()]
    if isinstance(raw, dict):
        return [str(k) for k, enabled in raw.items() if enabled]
    if isinstance(raw, str):
        parsed = _parse_json(raw)
        if isinstance(parsed, (list, dict)):
            return parse_string_list(parsed)
        return [part.strip() for part in raw.split(",") if part.strip()]
    return []


# ── Media extraction ──

MediaStrategy = Callable[[Mapping[str, Any]], Optional[List[str]]]


def _urls_from_list(values: Sequence[Any]) -> List[str]:
    urls: List[str] = []
    for value in values:
        if isinstance(value, str):
            url = value.strip()
        elif isinstance(value, dict):
            url = parse_text(value.get("url") or value.get("src"))
        else:
            continue
        if url:
            urls.append(url)
    return urls


def _urls_from_string(raw: str) -> List[str]:
    text = raw.strip()
    if not text:
        return []
    parsed = _parse_json(text)
    if isinstance(parsed, list):
        return _urls_from_list(parsed)
    if parsed is None and text.startswith("["):
        logger.debug("Malformed JSON media list, treating as a single URL: '%s'", text[:80])
    return [text]


def array_field(field: str) -> MediaStrategy:
    """Canonical field: a real array, or a JSON-encoded array string."""

    def strategy(record: Mapping[str, Any]) -> Optional[List[str]]:
        value = record.get(field)
        if isinstance(value, str):
            value = _parse_json(value.strip())
        if isinstance(value, list):
            return _urls_from_list(value) or None
        return None

    strategy.__name__ = f"array_field[{field}]"
    return strategy


def array_or_string_field(field: str) -> MediaStrategy:
    """Array, JSON-encoded array string, or a single URL string."""

    def strategy(record: Mapping[str, Any]) -> Optional[List[str]]:
        value = record.get(field)
        if isinstance(value, list):
            return _urls_from_list(value) or None
        if isinstance(value, dict):
            return _urls_from_list([value]) or None
        if isinstance(value, str):
            return _urls_from_string(value) or None
        return None

    strategy.__name__ = f"array_or_string_field[{field}]"
    return strategy


# Legacy single-value columns get the same string handling: older producers
# stored JSON arrays in them too.
IMAGE_STRATEGIES: Tuple[MediaStrategy, ...] = (
    array_field("image_urls"),
    array_or_string_field("images"),
    array_or_string_field("image"),
    array_or_string_field("image_url"),
    array_or_string_field("photo_url"),
    array_or_string_field("thumbnail_url"),
)

VIDEO_STRATEGIES: Tuple[MediaStrategy, ...] = (
    array_field("video_urls"),
    array_or_string_field("videos"),
    array_or_string_field("video"),
    array_or_string_field("video_url"),
)


def extract_media_urls(record: Mapping[str, Any], strategies: Sequence[MediaStrategy]) -> List[str]:
    """Return the URLs of the first strategy that yields any, else []."""
    for strategy in strategies:
        urls = strategy(record)
        if urls is not None:
            return urls
    return []


def build_media_items(urls: Sequence[str], prefix: str, record_id: str) -> List[MediaItem]:
    return [
        MediaItem(
            id=f"{prefix}-{record_id}-{position}",
            url=url,
            is_primary=position == 0,
            order=position,
        )
        for position, url in enumerate(urls)
    ]


# ── Enum normalization ──

def _enum_key(raw: Any) -> str:
    return re.sub(r"[\s\-]+", "_", parse_text(raw).lower())


_LISTING_TYPE_ALIASES: Dict[str, ListingType] = {
    "sale": ListingType.SALE,
    "sell": ListingType.SALE,
    "buy": ListingType.SALE,
    "for_sale": ListingType.SALE,
    "rent": ListingType.RENT,
    "rental": ListingType.RENT,
    "to_let": ListingType.RENT,
    "for_rent": ListingType.RENT,
    "let": ListingType.RENT,
    "lease": ListingType.LEASE,
    "leasehold": ListingType.LEASE,
    "shared": ListingType.SHARED,
    "room": ListingType.SHARED,
    "flatshare": ListingType.SHARED,
    "other": ListingType.OTHER,
}

_STATUS_ALIASES: Dict[str, PropertyStatus] = {
    "draft": PropertyStatus.DRAFT,
    "published": PropertyStatus.PUBLISHED,
    "online": PropertyStatus.PUBLISHED,
    "active": PropertyStatus.PUBLISHED,
    "live": PropertyStatus.PUBLISHED,
    "available": PropertyStatus.PUBLISHED,
    "under_offer": PropertyStatus.UNDER_OFFER,
    "sstc": PropertyStatus.UNDER_OFFER,
    "sold": PropertyStatus.SOLD,
    "let": PropertyStatus.LET,
    "let_agreed": PropertyStatus.LET,
    "rented": PropertyStatus.LET,
    "archived": PropertyStatus.ARCHIVED,
    "offline": PropertyStatus.ARCHIVED,
    "inactive": PropertyStatus.ARCHIVED,
}

_PROPERTY_TYPE_ALIASES: Dict[str, PropertyType] = {
    "apartment": PropertyType.APARTMENT,
    "flat": PropertyType.APARTMENT,
    "condo": PropertyType.APARTMENT,
    "penthouse": PropertyType.APARTMENT,
    "house": PropertyType.HOUSE,
    "detached": PropertyType.HOUSE,
    "semi_detached": PropertyType.HOUSE,
    "terraced": PropertyType.HOUSE,
    "cottage": PropertyType.HOUSE,
    "villa": PropertyType.VILLA,
    "studio": PropertyType.STUDIO,
    "townhouse": PropertyType.TOWNHOUSE,
    "bungalow": PropertyType.BUNGALOW,
    "land": PropertyType.LAND,
    "plot": PropertyType.LAND,
    "commercial": PropertyType.COMMERCIAL,
    "retail": PropertyType.COMMERCIAL,
    "shop": PropertyType.COMMERCIAL,
    "office": PropertyType.OFFICE,
    "other": PropertyType.OTHER,
}


def _resolve_listing_type(record: Mapping[str, Any]) -> ListingType:
    # property_type is last: an old admin form wrote 'sale'/'rent' there.
    for field in ("listing_type", "rental_type", "property_type"):
        listing_type = _LISTING_TYPE_ALIASES.get(_enum_key(record.get(field)))
        if listing_type is not None:
            return listing_type
    return ListingType.SALE


def _resolve_property_type(record: Mapping[str, Any]) -> PropertyType:
    return _PROPERTY_TYPE_ALIASES.get(_enum_key(record.get("property_type")), PropertyType.OTHER)


def _resolve_status(record: Mapping[str, Any]) -> PropertyStatus:
    return _STATUS_ALIASES.get(_enum_key(record.get("status")), PropertyStatus.DRAFT)


def _resolve_published(record: Mapping[str, Any], status: PropertyStatus) -> bool:
    """The published flag wins; then the draft flag; then the status column."""
    if record.get("published") is not None:
        return parse_bool(record.get("published"))
    if record.get("draft") is not None:
        return not parse_bool(record.get("draft"), default=True)
    return status is PropertyStatus.PUBLISHED


def _first_present(record: Mapping[str, Any], *fields: str) -> Any:
    for field in fields:
        value = record.get(field)
        if value is not None and value != "":
            return value
    return None


# ── Row → Entity ──

def to_entity(record: Mapping[str, Any]) -> PropertyEntity:
    """Build a PropertyEntity from a persisted row. Never raises on bad shapes."""
    if not isinstance(record, Mapping):
        record = {}

    record_id = parse_text(record.get("id"))
    status = _resolve_status(record)
    published = _resolve_published(record, status)

    country = parse_text(record.get("country"))

    if record.get("area") is not None:
        area = Area(
            total=parse_number(record.get("area")),
            unit=parse_text(record.get("area_unit")) or "sqft",
        )
    elif record.get("property_size_sqm") is not None:
        area = Area(total=parse_number(record.get("property_size_sqm")), unit="sqm")
    else:
        area = Area(
            total=parse_number(record.get("size")),
            unit=parse_text(record.get("area_unit")) or "sqft",
        )

    return PropertyEntity(
        id=record_id,
        title=parse_text(record.get("title")),
        description=parse_text(record.get("description")),
        short_description=parse_text(record.get("short_description")),
        price=Price(
            amount=max(0.0, parse_number(record.get("price"))),
            currency=parse_text(record.get("currency")).upper() or "GBP",
            negotiable=parse_bool(record.get("negotiable")),
        ),
        property_type=_resolve_property_type(record),
        listing_type=_resolve_listing_type(record),
        status=status,
        address=Address(
            line1=parse_text(_first_present(record, "address_line_1", "address")),
            line2=parse_text(record.get("address_line_2")),
            city=parse_text(record.get("city")),
            state=parse_text(record.get("state")),
            postal_code=parse_text(_first_present(record, "postcode", "zip_code", "postal_code")),
            country=country,
            country_code=resolve_country_code(country),
            latitude=parse_number(record.get("latitude"), None),
            longitude=parse_number(record.get("longitude"), None),
            neighborhood=parse_text(record.get("neighborhood")),
        ),
        area=area,
        rooms=Rooms(
            bedrooms=parse_count(record.get("bedrooms")),
            bathrooms=parse_count(record.get("bathrooms")),
            balconies=parse_count(record.get("balconies")),
            parking=parse_count(_first_present(record, "parking_spaces", "parking")),
        ),
        floor_number=parse_optional_int(record.get("floor_number")) or 0,
        total_floors=parse_count(record.get("total_floors")),
        year_built=parse_optional_int(record.get("year_built")),
        furnishing=parse_text(record.get("furnishing")) or "unfurnished",
        condition=parse_text(record.get("condition")) or "good",
        facing=parse_text(record.get("facing")),
        amenities=parse_string_list(_first_present(record, "amenities", "property_features", "features")),
        images=build_media_items(extract_media_urls(record, IMAGE_STRATEGIES), "img", record_id),
        videos=build_media_items(extract_media_urls(record, VIDEO_STRATEGIES), "vid", record_id),
        virtual_tour_url=parse_text(record.get("virtual_tour_url")),
        contact=Contact(
            name=parse_text(_first_present(record, "contact_name", "agent_name")),
            email=parse_text(_first_present(record, "contact_email", "agent_email")),
            phone=parse_text(_first_present(record, "contact_phone", "agent_phone")),
            company=parse_text(_first_present(record, "company", "agent_company")),
        ),
        available_from=parse_text(record.get("available_from")),
        deposit=max(0.0, parse_number(_first_present(record, "deposit", "deposit_amount"))),
        minimum_lease=parse_count(record.get("minimum_lease")),
        maintenance_charges=max(0.0, parse_number(record.get("maintenance_charges"))),
        inclusions=parse_text(record.get("inclusions")),
        exclusions=parse_text(record.get("exclusions")),
        analytics=Analytics(
            views=parse_count(record.get("views")),
            inquiries=parse_count(record.get("inquiries")),
            favorites=parse_count(record.get("favorites")),
            shares=parse_count(record.get("shares")),
        ),
        published=published,
        draft=not published,
        featured=parse_bool(record.get("featured")),
        verified=parse_bool(record.get("verified")),
        agent_id=parse_text(_first_present(record, "agent_id", "user_id")) or None,
        created_at=parse_date(record.get("created_at")),
        updated_at=parse_date(record.get("updated_at")),
    )


async def resolve_entity(
    record: Mapping[str, Any],
    lookup: Optional["LocationLookupService"] = None,
) -> PropertyEntity:
    """to_entity plus address resolution through the location lookup.

    Rows written by the structured address picker carry country/state/city
    ids instead of names. Lookup failures leave the address as mapped.
    """
    entity = to_entity(record)
    if lookup is None or not isinstance(record, Mapping):
        return entity

    address = entity.address
    updates: Dict[str, Any] = {}
    try:
        if not address.country and record.get("country_id"):
            country = await lookup.country_by_id(str(record["country_id"]))
            if country is not None:
                updates["country"] = country.name
                updates["country_code"] = country.code
        if not address.state and record.get("state_id"):
            state = await lookup.state_by_id(str(record["state_id"]))
            if state is not None:
                updates["state"] = state.name
        if not address.city and record.get("city_id"):
            city = await lookup.city_by_id(str(record["city_id"]))
            if city is not None:
                updates["city"] = city.name
                if not address.postal_code and city.postal_code:
                    updates["postal_code"] = city.postal_code

        country_name = updates.get("country", address.country)
        if country_name and not updates.get("country_code", address.country_code):
            code = await lookup.country_code(country_name)
            if code:
                updates["country_code"] = code
    except BackendError as e:
        logger.warning(
            "Location lookup failed for property %s: %s",
            entity.id,
            str(e),
            extra={"property_id": entity.id},
        )

    if updates:
        entity = entity.model_copy(update={"address": address.model_copy(update=updates)})
    return entity


# ── Entity → Row ──

_SIMPLE_FIELDS: Dict[str, Tuple[str, ...]] = {
    "title": ("title",),
    "description": ("description",),
    "short_description": ("short_description",),
    "property_type": ("property_type",),
    "listing_type": ("listing_type",),
    "status": ("status",),
    "floor_number": ("floor_number",),
    "total_floors": ("total_floors",),
    "year_built": ("year_built",),
    "furnishing": ("furnishing",),
    "condition": ("condition",),
    "facing": ("facing",),
    "amenities": ("amenities",),
    "virtual_tour_url": ("virtual_tour_url",),
    "available_from": ("available_from",),
    "deposit": ("deposit",),
    "minimum_lease": ("minimum_lease",),
    "maintenance_charges": ("maintenance_charges",),
    "inclusions": ("inclusions",),
    "exclusions": ("exclusions",),
    "featured": ("featured",),
    "verified": ("verified",),
    "agent_id": ("agent_id",),
    "created_at": ("created_at",),
    "updated_at": ("updated_at",),
}

_GROUP_FIELDS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "price": {
        "amount": ("price",),
        "currency": ("currency",),
        "negotiable": ("negotiable",),
    },
    "address": {
        "line1": ("address_line_1",),
        "line2": ("address_line_2",),
        "city": ("city",),
        "state": ("state",),
        "postal_code": ("postcode",),
        "country": ("country",),
        "country_code": (),  # derived on read
        "latitude": ("latitude",),
        "longitude": ("longitude",),
        "neighborhood": ("neighborhood",),
    },
    "area": {
        "total": ("area",),
        "unit": ("area_unit",),
    },
    "rooms": {
        "bedrooms": ("bedrooms",),
        "bathrooms": ("bathrooms",),
        "balconies": ("balconies",),
        "parking": ("parking_spaces",),
    },
    "contact": {
        "name": ("contact_name",),
        "email": ("contact_email",),
        "phone": ("contact_phone",),
        "company": ("company",),
    },
    "analytics": {
        "views": ("views",),
        "inquiries": ("inquiries",),
        "favorites": ("favorites",),
        "shares": ("shares",),
    },
}

_MEDIA_FIELDS: Dict[str, Tuple[str, ...]] = {
    "images": ("image_urls", "images"),
    "videos": ("video_urls", "videos"),
}


def _as_dict(value: Any) -> Dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_unset=True)
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def _record_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _media_urls(value: Any) -> List[str]:
    if isinstance(value, str):
        return _urls_from_string(value)
    if not isinstance(value, (list, tuple)):
        return []
    items = [item.model_dump() if isinstance(item, BaseModel) else item for item in value]
    return _urls_from_list(items)


def to_record(partial: Any) -> Dict[str, Any]:
    """Map a (partial) entity to row columns. Absent attributes produce nothing."""
    data = _as_dict(partial)
    record: Dict[str, Any] = {}

    for attribute, columns in _SIMPLE_FIELDS.items():
        if attribute in data:
            for column in columns:
                record[column] = _record_value(data[attribute])

    for group, fields in _GROUP_FIELDS.items():
        if data.get(group) is None:
            continue
        values = _as_dict(data[group])
        for attribute, columns in fields.items():
            if attribute in values:
                for column in columns:
                    record[column] = _record_value(values[attribute])

    for attribute, columns in _MEDIA_FIELDS.items():
        if attribute in data and data[attribute] is not None:
            urls = _media_urls(data[attribute])
            for column in columns:
                record[column] = list(urls)

    if data.get("published") is not None:
        record["published"] = bool(data["published"])
        record["draft"] = not record["published"]
    elif data.get("draft") is not None:
        record["draft"] = bool(data["draft"])
        record["published"] = not record["draft"]
    elif "status" in record:
        # Keep the visibility flags coherent with an explicit lifecycle move.
        if record["status"] == PropertyStatus.PUBLISHED.value:
            record["published"], record["draft"] = True, False
        elif record["status"] == PropertyStatus.DRAFT.value:
            record["published"], record["draft"] = False, True

    return record
