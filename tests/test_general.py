"""
Tests for general utilities.
"""
import pytest
from hypothesis import given
from hypothesis.strategies import permutations
from shapely.geometry import LineString, MultiLineString, Point, Polygon, box

import tests
from landtopo import general


@pytest.mark.parametrize("geom,assumed_wkts", tests.test_merge_to_lines_params)
def test_merge_to_lines(geom, assumed_wkts):
    """
    Test merge_to_lines with pytest params.
    """
    result = general.merge_to_lines(geom)
    assert all(isinstance(line, LineString) for line in result)
    assert [line.wkt for line in result] == assumed_wkts


@given(
    permutations(
        [
            [(0, 0), (1, 0)],
            [(1, 0), (2, 0)],
            [(2, 0), (2, 1)],
            [(5, 5), (6, 5)],
            [(-3, 0), (-4, 0)],
        ]
    )
)
def test_merge_to_lines_order(segments):
    """
    Test that merge_to_lines result does not depend on input order.
    """
    result = general.merge_to_lines(MultiLineString(segments))
    assert len(result) == 3
    assert sorted(line.normalize().wkt for line in result) == sorted(
        [
            LineString([(0, 0), (1, 0), (2, 0), (2, 1)]).normalize().wkt,
            LineString([(5, 5), (6, 5)]).normalize().wkt,
            LineString([(-3, 0), (-4, 0)]).normalize().wkt,
        ]
    )
    assert result == sorted(result, key=general.line_sort_key)


@pytest.mark.parametrize("coords,assumed_result", tests.test_remove_repeated_coords_params)
def test_remove_repeated_coords(coords, assumed_result):
    """
    Test remove_repeated_coords with pytest params.
    """
    result = general.remove_repeated_coords(coords)
    assert result == assumed_result
    assert all(isinstance(value, float) for coord in result for value in coord)


@pytest.mark.parametrize(
    "geom,assumed_valid",
    [
        (box(0, 0, 1, 1), True),
        (tests.BOWTIE, False),
        (LineString([(0, 0), (1, 1)]), True),
    ],
)
def test_validity_reason(geom, assumed_valid):
    """
    Test validity_reason.
    """
    result = general.validity_reason(geom)
    if assumed_valid:
        assert result is None
    else:
        assert isinstance(result, str)
        assert "Self-intersection" in result


@pytest.mark.parametrize(
    "geometry,assumed_type",
    [
        ("POINT (1 2)", Point),
        ("LINESTRING (0 0, 1.5 1.5)", LineString),
        (box(0, 0, 1, 1), Polygon),
    ],
)
def test_parse_geometry(geometry, assumed_type):
    """
    Test parse_geometry.
    """
    result = general.parse_geometry(geometry)
    assert isinstance(result, assumed_type)


def test_parse_geometry_invalid_wkt():
    """
    Test that unparseable WKT raises ValueError.
    """
    with pytest.raises(ValueError):
        general.parse_geometry("POLYGON ((0 0, 1")


@pytest.mark.parametrize(
    "line,area,assumed_length",
    [
        (LineString([(-1, 0.5), (2, 0.5)]), box(0, 0, 1, 1), 1.0),
        (LineString([(5, 5), (6, 6)]), box(0, 0, 1, 1), 0.0),
        (LineString([(0, 0), (0, 3)]), box(-1, 1, 1, 2), 1.0),
    ],
)
def test_intersection_length(line, area, assumed_length):
    """
    Test intersection_length.
    """
    result = general.intersection_length(line, area)
    assert isinstance(result, float)
    assert result == pytest.approx(assumed_length)


def test_report_repair_loop():
    """
    Test report_repair_loop.
    """
    general.report_repair_loop(5, 5, "testing")
    with pytest.raises(RecursionError):
        general.report_repair_loop(6, 5, "testing")


def test_safe_buffer():
    """
    Test safe_buffer.
    """
    result = general.safe_buffer(LineString([(0, 0), (1, 0)]), 0.1)
    assert isinstance(result, Polygon)
    with pytest.raises(TypeError):
        general.safe_buffer(MultiLineString([[(0, 0), (1, 0)], [(5, 5), (6, 5)]]), 0.1)
