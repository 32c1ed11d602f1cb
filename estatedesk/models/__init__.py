"""SQLAlchemy models for EstateDesk."""
from estatedesk.models.property_model import PropertyRow
from estatedesk.models.location_model import City, Country, State
from estatedesk.models.storage_model import StoredObject

__all__ = [
    "PropertyRow",
    "Country",
    "State",
    "City",
    "StoredObject",
]
