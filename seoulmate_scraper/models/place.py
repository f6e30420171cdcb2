"""
Place record produced by the scraping pipeline, plus the validity predicates
used to judge whether a scrape attempt produced usable data.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional

MIN_DESCRIPTION_LENGTH = 20

# Seoul bounding box (latitude, longitude)
SEOUL_LAT_RANGE = (37.0, 38.0)
SEOUL_LNG_RANGE = (126.5, 127.5)


@dataclass(frozen=True)
class Coordinate:
    """Latitude/longitude pair; both present or both absent"""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def __post_init__(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be both present or both absent")

    @classmethod
    def absent(cls) -> 'Coordinate':
        return cls(None, None)

    @property
    def is_present(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {'latitude': self.latitude, 'longitude': self.longitude}


def in_seoul_bounds(latitude: float, longitude: float) -> bool:
    return (SEOUL_LAT_RANGE[0] <= latitude <= SEOUL_LAT_RANGE[1]
            and SEOUL_LNG_RANGE[0] <= longitude <= SEOUL_LNG_RANGE[1])


@dataclass
class PlaceRecord:
    """A single attraction scraped from a detail page"""
    identifier: str
    name: str = ""
    description: str = ""
    address: str = ""
    coordinate: Coordinate = field(default_factory=Coordinate.absent)
    source_url: Optional[str] = None
    category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'identifier': self.identifier,
            'name': self.name,
            'description': self.description,
            'address': self.address,
            'latitude': self.coordinate.latitude,
            'longitude': self.coordinate.longitude,
            'source_url': self.source_url,
            'category': self.category,
        }


def has_valid_name(record: PlaceRecord) -> bool:
    return bool(record.name and record.name.strip())


def has_valid_identifier(record: PlaceRecord) -> bool:
    return bool(record.identifier and record.identifier.strip())


def has_valid_coordinates(record: PlaceRecord) -> bool:
    return record.coordinate.is_present


def has_valid_description(record: PlaceRecord) -> bool:
    return bool(record.description) and len(record.description) >= MIN_DESCRIPTION_LENGTH


def is_complete(record: PlaceRecord) -> bool:
    return (has_valid_name(record)
            and has_valid_identifier(record)
            and has_valid_coordinates(record)
            and has_valid_description(record))
