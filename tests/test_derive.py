"""Tests for the storeys/height/floor area reconciliation and derived areas."""

import logging
import math

import pytest
from shapely.geometry import LineString, box

from footprint3d.derive import derive_2d_fields, derive_3d_fields, derive_more_fields
from footprint3d.errors import MissingFieldError
from footprint3d.features import Feature, Field


def feature(**values):
    return Feature.from_geometry(box(0, 0, 1, 1), values={Field(k): v for k, v in values.items()})


class TestDerive3DFields:
    def test_reference_building(self):
        result = derive_3d_fields(
            feature(footprint=10, perimeter=14, height=3, shared_perimeter=0.25)
        )
        assert result.get(Field.WALL_AREA) == pytest.approx(42)
        assert result.get(Field.PARTY_WALL_AREA) == pytest.approx(10.5)
        assert result.get(Field.EXTERNAL_WALL_AREA) == pytest.approx(31.5)
        assert result.get(Field.EXTERNAL_SURFACE_AREA) == pytest.approx(51.5)
        assert result.get(Field.TOTAL_SURFACE_AREA) == pytest.approx(62)
        assert result.get(Field.VOLUME) == pytest.approx(30)
        assert result.get(Field.EXT_SURFACE_PROPORTION) == pytest.approx(0.831, abs=1e-3)
        assert result.get(Field.EXT_SURFACE_PER_VOLUME) == pytest.approx(1.717, abs=1e-3)
        assert result.get(Field.TOT_SURFACE_PER_VOLUME) == pytest.approx(2.067, abs=1e-3)

    def test_zero_volume_is_fatal_and_logged(self, caplog):
        """Unlike party walls, arithmetic failures propagate."""
        with caplog.at_level(logging.ERROR, logger="footprint3d.derive"):
            with pytest.raises(ZeroDivisionError):
                derive_3d_fields(feature(footprint=0, perimeter=14, height=3, shared_perimeter=0))
        assert "deriving-3d-fields" in caplog.text

    def test_missing_input(self):
        with pytest.raises(MissingFieldError) as info:
            derive_3d_fields(feature(footprint=10, height=3, shared_perimeter=0))
        assert info.value.field is Field.PERIMETER


class TestDerive2DFields:
    def test_shared_length_and_ratio(self):
        result = derive_2d_fields(feature(footprint=10, perimeter=14, shared_perimeter=0.25))
        assert result.get(Field.SHARED_PERIMETER_M) == pytest.approx(3.5)
        assert result.get(Field.PERIMETER_PER_FOOTPRINT) == pytest.approx(1.4)

    def test_zero_perimeter(self):
        result = derive_2d_fields(feature(footprint=0, perimeter=0, shared_perimeter=0))
        assert result.get(Field.PERIMETER_PER_FOOTPRINT) == 0

    def test_line_has_no_area(self):
        line = Feature.from_geometry(
            LineString([(0, 0), (5, 0)]),
            values={Field.FOOTPRINT: 0, Field.PERIMETER: 5, Field.SHARED_PERIMETER: 0},
        )
        assert math.isinf(derive_2d_fields(line).get(Field.PERIMETER_PER_FOOTPRINT))


class TestDeriveMoreFields:
    def test_storeys_from_height(self):
        result = derive_more_fields(feature(height=7.0, footprint=50))
        assert result.get(Field.STOREYS) == 2
        assert result.get(Field.HEIGHT) == 7.0
        assert result.get(Field.FLOOR_AREA) == 100

    def test_storeys_at_least_one(self):
        assert derive_more_fields(feature(height=1.0)).get(Field.STOREYS) == 1
        assert derive_more_fields(feature(storeys=0)).get(Field.STOREYS) == 1

    def test_height_from_storeys(self):
        result = derive_more_fields(feature(storeys=4, footprint=20), storey_height=2.5)
        assert result.get(Field.HEIGHT) == 10.0
        assert result.get(Field.FLOOR_AREA) == 80

    def test_nothing_known(self):
        result = derive_more_fields(feature())
        assert result.get(Field.STOREYS) == 1
        assert result.get(Field.HEIGHT) == 3.0
        assert result.get(Field.FLOOR_AREA) == 0

    def test_given_values_win(self):
        result = derive_more_fields(feature(height=20.0, storeys=3, floor_area=123, footprint=50))
        assert result.get(Field.STOREYS) == 3
        assert result.get(Field.HEIGHT) == 20.0
        assert result.get(Field.FLOOR_AREA) == 123

    def test_storey_height_is_explicit(self):
        assert derive_more_fields(feature(height=9.0), storey_height=4.5).get(Field.STOREYS) == 2
        assert derive_more_fields(feature(height=9.0)).get(Field.STOREYS) == 3

    def test_without_shared_perimeter_no_area_fields(self):
        result = derive_more_fields(feature(height=6.0, footprint=10, perimeter=14))
        assert Field.SHARED_PERIMETER_M not in result
        assert Field.VOLUME not in result

    def test_zero_height_skips_3d(self):
        result = derive_more_fields(
            feature(height=0.0, footprint=10, perimeter=14, shared_perimeter=0.5)
        )
        assert result.get(Field.SHARED_PERIMETER_M) == pytest.approx(7)
        assert Field.VOLUME not in result
        assert result.get(Field.STOREYS) == 1
        assert result.get(Field.HEIGHT) == 0.0

    def test_full_derivation(self):
        result = derive_more_fields(
            feature(footprint=10, perimeter=14, height=3, shared_perimeter=0.25)
        )
        assert result.get(Field.STOREYS) == 1
        assert result.get(Field.FLOOR_AREA) == 10
        assert result.get(Field.VOLUME) == pytest.approx(30)
        assert result.get(Field.SHARED_PERIMETER_M) == pytest.approx(3.5)

    def test_idempotent(self):
        once = derive_more_fields(feature(footprint=10, perimeter=14, height=7.5, shared_perimeter=0.25))
        twice = derive_more_fields(once)
        assert dict(twice.values) == dict(once.values)

    def test_input_not_mutated(self):
        original = feature(height=7.0, footprint=50)
        derive_more_fields(original)
        assert Field.STOREYS not in original
