import pytest

from seoulmate_scraper.models.place import (
    Coordinate,
    PlaceRecord,
    has_valid_coordinates,
    has_valid_description,
    has_valid_identifier,
    has_valid_name,
    in_seoul_bounds,
    is_complete,
)

from conftest import make_record


def test_complete_record():
    record = make_record()
    assert has_valid_name(record)
    assert has_valid_identifier(record)
    assert has_valid_coordinates(record)
    assert has_valid_description(record)
    assert is_complete(record)


def test_description_needs_twenty_characters():
    assert not has_valid_description(make_record(description="a" * 19))
    assert has_valid_description(make_record(description="a" * 20))
    assert not has_valid_description(make_record(description=""))


def test_missing_coordinates_make_record_incomplete():
    record = make_record(coordinate=Coordinate.absent())
    assert not has_valid_coordinates(record)
    assert not is_complete(record)


def test_blank_name_and_identifier_are_invalid():
    record = PlaceRecord(identifier="  ", name="")
    assert not has_valid_name(record)
    assert not has_valid_identifier(record)


def test_coordinate_rejects_half_populated_pair():
    with pytest.raises(ValueError):
        Coordinate(37.5, None)


def test_record_to_dict_flattens_coordinates():
    data = make_record().to_dict()
    assert data["identifier"] == "KOP000072"
    assert data["latitude"] == 37.5796
    assert data["longitude"] == 126.977


def test_seoul_bounds_edges_are_inclusive():
    assert in_seoul_bounds(37.0, 126.5)
    assert in_seoul_bounds(38.0, 127.5)
    assert not in_seoul_bounds(38.01, 127.0)
