# core/ik/geometry.py
import math
from dataclasses import dataclass

from .chain import JointLimits


def angle_between(x: float, y: float) -> float:
    """Planar bearing of the vector (x, y)."""
    return math.atan2(y, x)


def law_of_cosines(a: float, b: float, c: float) -> float:
    """
    Interior angle opposite side `c` of the triangle with sides a, b, c.

    Returns NaN when the triangle inequality is violated or a side adjacent to
    the angle is zero; callers treat NaN as "outside the dexterous workspace".
    """
    denominator = 2.0 * a * b
    if denominator == 0.0:
        return math.nan
    ratio = (a * a + b * b - c * c) / denominator
    if ratio < -1.0 or ratio > 1.0 or math.isnan(ratio):
        return math.nan
    return math.acos(ratio)


def clamp(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))


def wrap_angle(angle: float) -> float:
    """Wrap an angle into (-pi, pi]."""
    if math.isnan(angle) or math.isinf(angle):
        return angle
    wrapped = math.fmod(angle + math.pi, 2.0 * math.pi)
    if wrapped <= 0.0:
        wrapped += 2.0 * math.pi
    return wrapped - math.pi


def clamp_joint(value: float, limits: JointLimits) -> float:
    """Clamp into the joint limits; NaN falls back to the maximum limit."""
    if math.isnan(value):
        return limits.max_position
    return clamp(value, limits.min_position, limits.max_position)


@dataclass(frozen=True)
class ReachabilityEnvelope:
    upper_arm: float
    forearm: float
    effector_offset: float
    effective_forearm: float
    min_reach: float
    max_reach: float

    def contains(self, distance: float) -> bool:
        return self.min_reach <= distance <= self.max_reach


def reach_envelope(upper_arm: float, forearm: float, effector_offset: float,
                   effective_forearm: float = None) -> ReachabilityEnvelope:
    """
    Distance band a two-link sub-chain can place its end point from the
    shoulder. When the wrist->effector offset is not collinear with the forearm
    pass the measured elbow->effector length as `effective_forearm`.
    """
    if effective_forearm is None:
        effective_forearm = forearm + effector_offset
    return ReachabilityEnvelope(
        upper_arm=upper_arm,
        forearm=forearm,
        effector_offset=effector_offset,
        effective_forearm=effective_forearm,
        min_reach=abs(upper_arm - effective_forearm),
        max_reach=upper_arm + effective_forearm,
    )
