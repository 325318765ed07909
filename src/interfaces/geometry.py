from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence


@dataclass(slots=True, frozen=True)
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: Vec3) -> Vec3:
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vec3) -> Vec3:
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> Vec3:
        return Vec3(self.x * scalar, self.y * scalar, self.z * scalar)

    def __rmul__(self, scalar: float) -> Vec3:
        return self * scalar

    def length_sq(self) -> float:
        return self.x * self.x + self.y * self.y + self.z * self.z

    def length(self) -> float:
        return math.sqrt(self.length_sq())

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)

    def flattened(self) -> Vec3:
        """Project onto the horizontal (XZ) plane."""
        return Vec3(self.x, 0.0, self.z)

    def normalized(self) -> Vec3:
        magnitude_sq = self.length_sq()
        if not magnitude_sq > 0.0:
            return Vec3()
        inv_magnitude = 1.0 / math.sqrt(magnitude_sq)
        return Vec3(self.x * inv_magnitude, self.y * inv_magnitude, self.z * inv_magnitude)

    def dot(self, other: Vec3) -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vec3) -> Vec3:
        return Vec3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def angle_to(self, other: Vec3) -> float:
        denominator = math.sqrt(self.length_sq() * other.length_sq())
        if denominator == 0.0:
            return math.pi / 2
        theta = self.dot(other) / denominator
        return math.acos(max(-1.0, min(1.0, theta)))

    def planar_distance_to(self, other: Vec3) -> float:
        dx = other.x - self.x
        dz = other.z - self.z
        return math.sqrt(dx * dx + dz * dz)

    def to_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(slots=True, frozen=True)
class Quat:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    @classmethod
    def from_yaw(cls, yaw: float) -> Quat:
        """Rotation of `yaw` radians about the vertical axis."""
        half = yaw * 0.5
        return cls(0.0, math.sin(half), 0.0, math.cos(half))

    def length_sq(self) -> float:
        return self.x * self.x + self.y * self.y + self.z * self.z + self.w * self.w

    def is_finite(self) -> bool:
        return all(math.isfinite(c) for c in (self.x, self.y, self.z, self.w))

    def normalized(self) -> Quat:
        magnitude_sq = self.length_sq()
        if not magnitude_sq > 0.0:
            return Quat()
        inv_magnitude = 1.0 / math.sqrt(magnitude_sq)
        return Quat(
            self.x * inv_magnitude,
            self.y * inv_magnitude,
            self.z * inv_magnitude,
            self.w * inv_magnitude,
        )

    def rotate(self, v: Vec3) -> Vec3:
        # q * v * q^-1 for a unit quaternion
        ix = self.w * v.x + self.y * v.z - self.z * v.y
        iy = self.w * v.y + self.z * v.x - self.x * v.z
        iz = self.w * v.z + self.x * v.y - self.y * v.x
        iw = -self.x * v.x - self.y * v.y - self.z * v.z
        return Vec3(
            ix * self.w + iw * -self.x + iy * -self.z - iz * -self.y,
            iy * self.w + iw * -self.y + iz * -self.x - ix * -self.z,
            iz * self.w + iw * -self.z + ix * -self.y - iy * -self.x,
        )

    def to_tuple(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.z, self.w)


# The embodiment looks down -Z when its orientation is the identity.
FORWARD = Vec3(0.0, 0.0, -1.0)


@dataclass(slots=True, frozen=True)
class Pose:
    """Position plus orientation of the embodiment."""

    position: Vec3
    orientation: Quat

    def is_finite(self) -> bool:
        return self.position.is_finite() and self.orientation.is_finite()

    def forward(self) -> Vec3:
        return self.orientation.normalized().rotate(FORWARD)


def vec3_from_any(value: Any) -> Optional[Vec3]:
    """Accept [x, y, z] sequences or {"x", "y", "z"} mappings."""
    if value is None:
        return None
    try:
        if isinstance(value, Mapping):
            return Vec3(float(value["x"]), float(value["y"]), float(value["z"]))
        if isinstance(value, Sequence) and not isinstance(value, str) and len(value) >= 3:
            return Vec3(float(value[0]), float(value[1]), float(value[2]))
    except (KeyError, TypeError, ValueError):
        return None
    return None


def quat_from_any(value: Any) -> Optional[Quat]:
    """Accept [x, y, z, w] sequences or {"x", "y", "z", "w"} mappings."""
    if value is None:
        return None
    try:
        if isinstance(value, Mapping):
            return Quat(
                float(value["x"]), float(value["y"]), float(value["z"]), float(value["w"])
            )
        if isinstance(value, Sequence) and not isinstance(value, str) and len(value) >= 4:
            return Quat(float(value[0]), float(value[1]), float(value[2]), float(value[3]))
    except (KeyError, TypeError, ValueError):
        return None
    return None
