"""Tests for raster decoding, caching, indexing and the relevance filter."""

import numpy as np
import pytest
from conftest import CRS, catalog_of, make_coverage, write_geotiff

from footprint3d.errors import RasterDecodeError
from footprint3d.rasters import (
    RasterCatalog,
    envelope_covers_index,
    open_coverage,
    rasters_to_index,
    relevant_indices,
)
from footprint3d.spatial import RectIndex


class TestCoverage:
    def test_bounds_and_crs(self):
        cov = make_coverage(np.zeros((4, 6)), origin=(100.0, 50.0), cell=2.0)
        assert cov.bounds() == ((100.0, 42.0, 112.0, 50.0), CRS)

    def test_sample_at_maps_to_cell(self):
        values = np.arange(16, dtype=float).reshape(4, 4)
        cov = make_coverage(values, origin=(0.0, 4.0))
        # top-left cell
        assert cov.sample_at(0.5, 3.5) == 0.0
        # row 2, col 1
        assert cov.sample_at(1.2, 1.7) == 9.0

    def test_sample_outside_extent_is_none(self):
        cov = make_coverage(np.ones((4, 4)), origin=(0.0, 4.0))
        assert cov.sample_at(-0.1, 1.0) is None
        assert cov.sample_at(1.0, 4.1) is None
        assert cov.sample_at(4.0, 1.0) is None
        assert cov.sample_at(1.0, -3.0) is None

    def test_no_data_values(self):
        cov = make_coverage(np.ones((2, 2)), nodata=-9999)
        assert cov.no_data_values(0) == {-9999.0}
        assert make_coverage(np.ones((2, 2))).no_data_values(0) == set()


class TestRasterCatalog:
    def test_facts_are_resolved_once(self):
        calls = []

        def decoder(raster):
            calls.append(raster)
            return make_coverage(np.ones((10, 10)))

        catalog = RasterCatalog(decoder=decoder, max_payloads=0)
        first = catalog.facts("a")
        second = catalog.facts("a")

        assert first is second
        assert first.bounds == (0.0, 30.0, 10.0, 40.0)
        assert first.crs == CRS
        assert calls == ["a"]

    def test_payload_cache_evicts_least_recently_used(self):
        catalog = catalog_of({k: make_coverage(np.ones((2, 2))) for k in "abc"}, max_payloads=2)
        catalog.load("a")
        catalog.load("b")
        catalog.load("a")
        catalog.load("c")
        assert catalog.cached_payloads == ["a", "c"]

    def test_evicted_payload_is_decoded_again(self):
        calls = []

        def decoder(raster):
            calls.append(raster)
            return make_coverage(np.ones((2, 2)))

        catalog = RasterCatalog(decoder=decoder, max_payloads=1)
        catalog.load("a")
        catalog.load("b")
        catalog.load("a")
        assert calls == ["a", "b", "a"]

    def test_clear(self):
        catalog = catalog_of({"a": make_coverage(np.ones((2, 2)))})
        catalog.facts("a")
        catalog.clear()
        assert catalog.cached_payloads == []

    def test_decode_failure_names_raster(self):
        def decoder(raster):
            raise OSError("broken file")

        with pytest.raises(RasterDecodeError) as info:
            RasterCatalog(decoder=decoder).load("tile_7.tif")
        assert info.value.raster == "tile_7.tif"
        assert "broken file" in str(info.value)

    def test_empty_bounds_rejected(self):
        catalog = catalog_of({"a": make_coverage(np.ones((0, 3)))})
        with pytest.raises(RasterDecodeError):
            catalog.facts("a")


class TestOpenCoverage:
    def test_reads_geotiff(self, tmp_path):
        values = np.full((5, 5), 12.0)
        values[0, 0] = -9999.0
        path = write_geotiff(tmp_path / "dsm.tif", values, origin=(1000.0, 2000.0))

        cov = open_coverage(path)
        bounds, crs = cov.bounds()
        assert crs == CRS
        assert bounds == pytest.approx((1000.0, 1995.0, 1005.0, 2000.0))
        assert cov.no_data_values(0) == {-9999.0}
        assert cov.sample_at(1002.5, 1997.5) == 12.0


class TestRastersToIndex:
    def test_groups_by_crs(self):
        coverages = {
            "bng_1": make_coverage(np.ones((10, 10)), origin=(0.0, 10.0)),
            "bng_2": make_coverage(np.ones((10, 10)), origin=(10.0, 10.0)),
            "utm_1": make_coverage(np.ones((10, 10)), origin=(0.0, 10.0), crs="EPSG:32630"),
        }
        index = rasters_to_index(list(coverages), catalog_of(coverages))

        assert set(index) == {CRS, "EPSG:32630"}
        assert len(index[CRS]) == 2
        assert len(index["EPSG:32630"]) == 1

    @pytest.mark.parametrize("order", [["a", "b", "c"], ["c", "a", "b"]])
    def test_every_raster_found_by_covering_query(self, order):
        coverages = {
            "a": make_coverage(np.ones((5, 5)), origin=(0.0, 5.0)),
            "b": make_coverage(np.ones((5, 5)), origin=(100.0, 5.0), crs="EPSG:32630"),
            "c": make_coverage(np.ones((5, 5)), origin=(50.0, 55.0)),
        }
        catalog = catalog_of(coverages)
        index = rasters_to_index(order, catalog)

        for raster, cov in coverages.items():
            bounds, crs = cov.bounds()
            assert raster in index[crs].search(bounds)

    def test_missing_file_aborts_build(self, tmp_path):
        with pytest.raises(RasterDecodeError) as info:
            rasters_to_index([tmp_path / "missing.tif"], RasterCatalog())
        assert info.value.raster == tmp_path / "missing.tif"

    def test_geotiffs(self, tmp_path):
        a = write_geotiff(tmp_path / "a.tif", np.ones((4, 4)), origin=(0.0, 4.0))
        b = write_geotiff(tmp_path / "b.tif", np.ones((4, 4)), origin=(4.0, 4.0))
        index = rasters_to_index([a, b], RasterCatalog())
        assert index[CRS].search((5.0, 1.0, 6.0, 2.0)) == [b]
        assert index[CRS].overall_bounds() == pytest.approx((0.0, 0.0, 8.0, 4.0))


class TestEnvelopeCoversIndex:
    def test_empty_index_is_never_relevant(self):
        assert not envelope_covers_index(CRS, RectIndex(), CRS, (0, 0, 1, 1))

    def test_same_crs(self):
        index = RectIndex.build([("a", (0, 0, 10, 10))])
        assert envelope_covers_index(CRS, index, CRS, (5, 5, 20, 20))
        assert not envelope_covers_index(CRS, index, CRS, (11, 11, 20, 20))

    def test_footprints_reprojected_into_raster_crs(self):
        # 60 km square of British National Grid around central London
        index = RectIndex.build([("london", (500000, 150000, 560000, 210000))])
        london = (-0.13, 51.50, -0.12, 51.51)
        edinburgh = (-3.20, 55.94, -3.18, 55.96)
        assert envelope_covers_index(CRS, index, "EPSG:4326", london)
        assert not envelope_covers_index(CRS, index, "EPSG:4326", edinburgh)

    def test_missing_crs_is_not_relevant(self):
        index = RectIndex.build([("a", (0, 0, 10, 10))])
        assert not envelope_covers_index(None, index, CRS, (0, 0, 1, 1))

    def test_relevant_indices(self):
        near = RectIndex.build([("near", (0, 0, 10, 10))])
        far = RectIndex.build([("far", (1000, 1000, 1010, 1010))])
        result = relevant_indices({CRS: near, "EPSG:32630": far, "EPSG:3857": RectIndex()}, CRS, (1, 1, 2, 2))
        assert list(result) == [CRS]
