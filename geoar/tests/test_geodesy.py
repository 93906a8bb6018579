"""
Tests for geodetic conversion module.

These tests verify the correctness of:
    - Geodetic to ECEF conversion
    - ECEF to geodetic conversion (Bowring) and its degenerate cases
    - ENU displacement from a reference point
    - Round trips between the three systems
"""

import math
import pytest
import numpy as np
from numpy.testing import assert_allclose

from geoar.errors import InvalidInputError
from geoar.geodesy import (
    WGS84_A,
    WGS84_B,
    ecef_to_enu,
    ecef_to_enu_rotation,
    ecef_to_geodetic,
    enu_to_ecef,
    enu_to_geodetic,
    geodetic_to_ecef,
    geodetic_to_enu,
    get_earth_radius_at,
)


def wrapped_lon_difference(a, b):
    """Longitude difference in degrees, in [-180, 180)."""
    return (a - b + 180.0) % 360.0 - 180.0


class TestGeodeticToECEF:
    """Tests for geodetic to ECEF conversion."""

    def test_equator_prime_meridian(self):
        """Point at equator/prime meridian should be on +X axis."""
        result = geodetic_to_ecef(0, 0, 0)

        assert_allclose(result[0], WGS84_A, rtol=1e-10)
        assert_allclose(result[1], 0, atol=1e-10)
        assert_allclose(result[2], 0, atol=1e-10)

    def test_equator_90_east(self):
        """Point at equator/90°E should be on +Y axis."""
        result = geodetic_to_ecef(0, 90, 0)

        assert_allclose(result[0], 0, atol=1e-6)
        assert_allclose(result[1], WGS84_A, rtol=1e-10)
        assert_allclose(result[2], 0, atol=1e-10)

    def test_north_pole(self):
        """North pole should be on +Z axis at the semi-minor axis."""
        result = geodetic_to_ecef(90, 0, 0)

        assert_allclose(result[0], 0, atol=1e-6)
        assert_allclose(result[1], 0, atol=1e-6)
        assert_allclose(result[2], WGS84_B, rtol=1e-10)

    def test_south_pole(self):
        result = geodetic_to_ecef(-90, 0, 0)

        assert_allclose(result[:2], [0, 0], atol=1e-6)
        assert_allclose(result[2], -WGS84_B, rtol=1e-10)

    def test_height_increases_distance(self):
        """Adding height should increase distance from center."""
        dist_0 = np.linalg.norm(geodetic_to_ecef(45, 45, 0))
        dist_1000 = np.linalg.norm(geodetic_to_ecef(45, 45, 1000))

        assert dist_1000 - dist_0 == pytest.approx(1000, rel=0.01)

    @pytest.mark.parametrize("lat,lon,h", [
        (91.0, 0.0, 0.0),
        (-90.5, 0.0, 0.0),
        (0.0, 180.5, 0.0),
        (float('nan'), 0.0, 0.0),
        (0.0, 0.0, float('inf')),
        (0.0, 0.0, float('nan')),
    ])
    def test_rejects_invalid_input(self, lat, lon, h):
        with pytest.raises(InvalidInputError):
            geodetic_to_ecef(lat, lon, h)

    def test_invalid_input_is_a_value_error(self):
        with pytest.raises(ValueError):
            geodetic_to_ecef(100.0, 0.0, 0.0)


class TestECEFToGeodetic:
    """Tests for Bowring's ECEF to geodetic conversion."""

    def test_on_x_axis(self):
        pos = ecef_to_geodetic([WGS84_A, 0, 0])

        assert pos.lat == pytest.approx(0.0, abs=1e-12)
        assert pos.lon == pytest.approx(0.0, abs=1e-12)
        assert pos.h == pytest.approx(0.0, abs=1e-6)

    def test_north_pole_axis(self):
        pos = ecef_to_geodetic([0, 0, WGS84_B + 100.0])

        assert pos.lat == pytest.approx(90.0)
        assert pos.h == pytest.approx(100.0, abs=1e-6)

    def test_south_pole_axis(self):
        pos = ecef_to_geodetic([0, 0, -WGS84_B])

        assert pos.lat == pytest.approx(-90.0)
        assert pos.h == pytest.approx(0.0, abs=1e-6)

    def test_equatorial_plane_defaults_to_zero_latitude(self):
        """z = 0 makes the parametric latitude term degenerate."""
        pos = ecef_to_geodetic([0, WGS84_A + 50.0, 0])

        assert pos.lat == 0.0
        assert pos.lon == pytest.approx(90.0)
        assert pos.h == pytest.approx(50.0, abs=1e-6)

    def test_earth_center_does_not_produce_nan(self):
        pos = ecef_to_geodetic([0, 0, 0])

        assert pos.lat == 0.0
        assert math.isfinite(pos.h)
        assert pos.h == pytest.approx(-WGS84_A)

    def test_rejects_non_finite(self):
        with pytest.raises(InvalidInputError):
            ecef_to_geodetic([np.nan, 0, 0])

    @pytest.mark.parametrize("lat,lon,h", [
        (46.5197, 6.5663, 400.0),
        (-33.8688, 151.2093, 58.0),
        (27.9881, 86.9250, 8848.0),
        (70.0, -150.0, -30.0),
        (-89.9, 10.0, 2835.0),
        (89.99, -179.5, 0.0),
        (0.001, 0.0, 0.0),
    ])
    def test_round_trip(self, lat, lon, h):
        """Geodetic -> ECEF -> geodetic is exact well below the millimeter."""
        # Bowring's closed form is not exact: around 45° latitude its height
        # error reaches about a micrometer, e.g. 1.02e-6 m at (45, 179.999999, 10)
        pos = ecef_to_geodetic(geodetic_to_ecef(lat, lon, h))

        assert pos.lat == pytest.approx(lat, abs=1e-8)
        assert pos.lon == pytest.approx(lon, abs=1e-8)
        assert pos.h == pytest.approx(h, abs=1e-4)

    @pytest.mark.parametrize("lat,lon,h", [
        (90.0, 0.0, 0.0),
        (90.0, 45.0, 1200.0),
        (-90.0, 0.0, 0.0),
        (-90.0, -120.0, 2835.0),
    ])
    def test_round_trip_at_exact_poles(self, lat, lon, h):
        ecef = geodetic_to_ecef(lat, lon, h)
        pos = ecef_to_geodetic(ecef)

        assert pos.lat == pytest.approx(lat, abs=1e-9)
        assert pos.h == pytest.approx(h, abs=1e-6)
        # Longitude is arbitrary on the polar axis, the point itself is not
        assert np.linalg.norm(geodetic_to_ecef(pos.lat, pos.lon, pos.h) - ecef) < 1e-6

    @pytest.mark.parametrize("lat,lon,h", [
        (0.0, 180.0, 0.0),
        (0.0, -180.0, 0.0),
        (-20.0, 180.0, 150.0),
        (65.0, -180.0, 12.0),
    ])
    def test_round_trip_at_antimeridian(self, lat, lon, h):
        ecef = geodetic_to_ecef(lat, lon, h)
        pos = ecef_to_geodetic(ecef)

        assert pos.lat == pytest.approx(lat, abs=1e-9)
        assert wrapped_lon_difference(pos.lon, lon) == pytest.approx(0.0, abs=1e-9)
        assert pos.h == pytest.approx(h, abs=1e-6)
        assert np.linalg.norm(geodetic_to_ecef(pos.lat, pos.lon, pos.h) - ecef) < 1e-6


class TestENU:
    """Tests for ENU displacement from a reference point."""

    REF = (46.5197, 6.5663, 400.0)

    def test_rotation_is_orthonormal(self):
        rot = ecef_to_enu_rotation(46.5, 6.5)

        assert_allclose(rot @ rot.T, np.eye(3), atol=1e-12)
        assert_allclose(np.linalg.det(rot), 1.0, rtol=1e-12)

    def test_reference_maps_to_origin(self):
        assert_allclose(geodetic_to_enu(*self.REF, *self.REF), [0, 0, 0], atol=1e-6)

    def test_up_follows_height(self):
        lat, lon, h = self.REF
        enu = geodetic_to_enu(lat, lon, h + 25.0, lat, lon, h)

        assert_allclose(enu, [0, 0, 25.0], atol=1e-6)

    def test_north_and_east_signs(self):
        lat, lon, h = self.REF
        north = geodetic_to_enu(lat + 0.001, lon, h, lat, lon, h)
        east = geodetic_to_enu(lat, lon + 0.001, h, lat, lon, h)

        assert north[1] > 100 and abs(north[0]) < 1e-6
        assert east[0] > 70 and abs(east[1]) < 1e-2

    def test_round_trip(self):
        lat, lon, h = self.REF
        target = (lat + 0.01, lon - 0.02, h + 12.0)

        enu = geodetic_to_enu(*target, lat, lon, h)
        pos = enu_to_geodetic(enu, lat, lon, h)

        assert pos.lat == pytest.approx(target[0], abs=1e-8)
        assert pos.lon == pytest.approx(target[1], abs=1e-8)
        assert pos.h == pytest.approx(target[2], abs=1e-4)

    @pytest.mark.parametrize("target,ref", [
        # Near-antipodal reference, about 20,000 km along the surface
        ((46.5197, 6.5663, 400.0), (-46.5197, -173.4337, 0.0)),
        # Across the antimeridian
        ((-10.0, 179.9, 20.0), (10.0, -179.9, 0.0)),
        # Reference on the pole
        ((-60.0, 30.0, 50.0), (90.0, 0.0, 0.0)),
        ((70.0, -180.0, 5.0), (-20.0, 0.0, 300.0)),
    ])
    def test_round_trip_with_distant_reference(self, target, ref):
        enu = geodetic_to_enu(*target, *ref)
        pos = enu_to_geodetic(enu, *ref)

        assert pos.lat == pytest.approx(target[0], abs=1e-9)
        assert wrapped_lon_difference(pos.lon, target[1]) == pytest.approx(0.0, abs=1e-9)
        assert pos.h == pytest.approx(target[2], abs=1e-6)
        back = geodetic_to_ecef(pos.lat, pos.lon, pos.h)
        assert np.linalg.norm(back - geodetic_to_ecef(*target)) < 1e-6

    def test_enu_to_ecef_inverts_rotation(self):
        enu = np.array([10.0, -20.0, 3.0])
        ecef = enu_to_ecef(enu, *self.REF)

        assert_allclose(ecef_to_enu(ecef, *self.REF), enu, atol=1e-6)

    def test_rejects_non_finite_vector(self):
        with pytest.raises(InvalidInputError):
            enu_to_ecef([0, np.inf, 0], *self.REF)


class TestEarthRadius:

    def test_equator_and_pole(self):
        assert get_earth_radius_at(0) == pytest.approx(WGS84_A)
        assert get_earth_radius_at(90) == pytest.approx(WGS84_B)

    def test_monotonic_towards_pole(self):
        radii = [get_earth_radius_at(lat) for lat in (0, 30, 60, 90)]
        assert radii == sorted(radii, reverse=True)

