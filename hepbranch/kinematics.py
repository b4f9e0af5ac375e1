"""
Kinematic helpers for four-vectors.

The same ``FourVector`` type carries four-momenta ``(px, py, pz, E)`` and
four-positions ``(x, y, z, t)``. Angles follow the usual collider
conventions; objects lying exactly on the beam axis get the signed
``SENTINEL`` instead of an infinite pseudorapidity.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

SENTINEL = 999.9

# Speed of light in m/s. Position time is stored in mm/c.
C_LIGHT = 2.99792458e8


@dataclass(frozen=True)
class FourVector:
    """A Lorentz four-vector.

    Attributes:
        x, y, z: Spatial (or momentum) components.
        t: Time (or energy) component.
    """

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    t: float = 0.0

    # Momentum-style aliases
    @property
    def px(self) -> float:
        return self.x

    @property
    def py(self) -> float:
        return self.y

    @property
    def pz(self) -> float:
        return self.z

    @property
    def e(self) -> float:
        return self.t

    @property
    def pt(self) -> float:
        """Transverse component."""
        return math.hypot(self.x, self.y)

    @property
    def p(self) -> float:
        """Magnitude of the spatial part."""
        return math.sqrt(self.x**2 + self.y**2 + self.z**2)

    @property
    def cos_theta(self) -> float:
        """Cosine of the polar angle (1.0 for the null vector)."""
        p = self.p
        return 1.0 if p == 0.0 else self.z / p

    @property
    def phi(self) -> float:
        """Azimuthal angle in (-pi, pi]."""
        if self.x == 0.0 and self.y == 0.0:
            return 0.0
        return math.atan2(self.y, self.x)

    @property
    def eta(self) -> float:
        """Pseudorapidity, without the beam-axis sentinel."""
        c = self.cos_theta
        if c * c < 1.0:
            return -0.5 * math.log((1.0 - c) / (1.0 + c))
        if self.z == 0.0:
            return 0.0
        return math.inf if self.z > 0.0 else -math.inf

    @property
    def rapidity(self) -> float:
        """Rapidity, without the beam-axis sentinel."""
        return 0.5 * math.log((self.t + self.z) / (self.t - self.z))

    @property
    def mass(self) -> float:
        """Invariant mass; negative for space-like vectors."""
        m2 = self.t**2 - self.x**2 - self.y**2 - self.z**2
        return -math.sqrt(-m2) if m2 < 0.0 else math.sqrt(m2)

    def __neg__(self) -> "FourVector":
        return FourVector(-self.x, -self.y, -self.z, -self.t)

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.z, self.t)


def _signed_sentinel(v: FourVector) -> float:
    return SENTINEL if v.z >= 0.0 else -SENTINEL


def on_beam_axis(v: FourVector) -> bool:
    """True when the vector points exactly along the beam axis.

    The comparison is exact on purpose: downstream selections filter on the
    sentinel value, so a tolerance here would change which objects they drop.
    """
    return abs(v.cos_theta) == 1.0


def eta_or_sentinel(v: FourVector) -> float:
    """Pseudorapidity, or +/-``SENTINEL`` on the beam axis."""
    if on_beam_axis(v):
        return _signed_sentinel(v)
    return v.eta


def rapidity_or_sentinel(v: FourVector) -> float:
    """Rapidity, or +/-``SENTINEL`` on the beam axis.

    Off-axis vectors with ``E <= |pz|`` have no real rapidity and also map to
    the signed sentinel.
    """
    if on_beam_axis(v):
        return _signed_sentinel(v)
    if v.t + v.z <= 0.0 or v.t - v.z <= 0.0:
        return _signed_sentinel(v)
    return v.rapidity


def convert_time(t: float) -> float:
    """Convert an internal time (mm/c) to seconds."""
    return t * 1.0e-3 / C_LIGHT


def ratio_or_sentinel(numerator: float, denominator: float) -> float:
    """``numerator / denominator`` for a positive denominator, else ``SENTINEL``."""
    return numerator / denominator if denominator > 0.0 else SENTINEL
