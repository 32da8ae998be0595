"""
Sphere <-> cube-face projection and the quadratic UV/ST warp.

Coordinates pass through four spaces:
- lat/lon in degrees,
- XYZ: a unit vector on the sphere,
- (face, u, v): the point projected onto one of six cube faces, u/v in [-1, 1],
- (face, s, t): u/v warped so cells have more uniform area, s/t in [-1, 1].

The face orientation table is static data; nothing here allocates per-face objects.
"""

from __future__ import annotations

from math import atan2, cos, degrees, hypot, radians, sin, sqrt

from geocell.core.errors import RangeError

NUM_FACES = 6

Vector = tuple[float, float, float]


def _check_face(face: int) -> None:
    if not 0 <= face < NUM_FACES:
        raise RangeError("face", face, f"face must be within [0, 5], got {face}")


def latlon_to_xyz(lat: float, lon: float) -> Vector:
    """Convert degrees to a unit vector."""
    phi = radians(lat)
    theta = radians(lon)
    cos_phi = cos(phi)
    return (cos(theta) * cos_phi, sin(theta) * cos_phi, sin(phi))


def xyz_to_latlon(x: float, y: float, z: float) -> tuple[float, float]:
    """Convert a (not necessarily unit) vector to degrees."""
    lat = degrees(atan2(z, hypot(x, y)))
    lon = degrees(atan2(y, x))
    return lat, lon


def xyz_to_face(x: float, y: float, z: float) -> int:
    """Return the face whose axis has the largest magnitude component."""
    ax, ay, az = abs(x), abs(y), abs(z)
    if ax > ay and ax > az:
        return 0 if x > 0 else 3
    if ay > az:
        return 1 if y > 0 else 4
    return 2 if z > 0 else 5


def xyz_to_face_uv(face: int, x: float, y: float, z: float) -> tuple[float, float]:
    """Project a vector onto `face` and return its (u, v) coordinates."""
    if face == 0:
        return y / x, z / x
    if face == 1:
        return -x / y, z / y
    if face == 2:
        return -x / z, -y / z
    if face == 3:
        return z / x, y / x
    if face == 4:
        return z / y, -x / y
    if face == 5:
        return -y / z, -x / z
    raise RangeError("face", face, f"face must be within [0, 5], got {face}")


def face_uv_to_xyz(face: int, u: float, v: float) -> Vector:
    """Inverse of `xyz_to_face_uv`; returns a unit vector."""
    _check_face(face)
    if face == 0:
        x, y, z = 1.0, u, v
    elif face == 1:
        x, y, z = -u, 1.0, v
    elif face == 2:
        x, y, z = -u, -v, 1.0
    elif face == 3:
        x, y, z = -1.0, -v, -u
    elif face == 4:
        x, y, z = v, -1.0, -u
    else:
        x, y, z = v, u, -1.0
    norm = sqrt(x * x + y * y + z * z)
    return x / norm, y / norm, z / norm


def xyz_to_face_uv_auto(x: float, y: float, z: float) -> tuple[int, float, float]:
    face = xyz_to_face(x, y, z)
    u, v = xyz_to_face_uv(face, x, y, z)
    return face, u, v


def uv_to_st(u: float) -> float:
    """Warp a face coordinate in [-1, 1] to the ST domain [-1, 1]."""
    if u >= 0:
        return sqrt(1 + 3 * u) - 1
    return 1 - sqrt(1 - 3 * u)


def st_to_uv(s: float) -> float:
    """Inverse of `uv_to_st`."""
    if s >= 0:
        return ((1 + s) * (1 + s) - 1) / 3
    return (1 - (1 - s) * (1 - s)) / 3
