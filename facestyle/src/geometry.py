import math
from enum import Enum
from typing import Sequence, Tuple

import numpy as np

from ..consts import NUM_LANDMARKS
from .errors import DegenerateInputError, SizeMismatchError

Point = Tuple[float, float]

__all__ = [
    "Point",
    "Topology",
    "average_point",
    "average_markers",
    "clamp_point",
    "clamp_landmarks",
    "is_point_inside",
    "euclidean_distance",
    "point_on_circle",
    "scale_points",
    "translate_points",
    "resample_contour",
    "rotate_180",
    "get_head_area_rect",
]


def _mirror_index(i: int) -> int:
    # Left/right swap of the 68-point face model.
    if i < 17:
        return 16 - i
    if i < 27:
        return 43 - i
    if i < 31:
        return i
    if i < 36:
        return 66 - i
    if i < 40 or 42 <= i < 46:
        return 81 - i
    if i < 48:
        return 87 - i
    if i < 55:
        return 102 - i
    if i < 60:
        return 114 - i
    if i < 65:
        return 124 - i
    return 132 - i


_DLIB68_MIRROR: Tuple[int, ...] = tuple(_mirror_index(i) for i in range(NUM_LANDMARKS))


class Topology(Enum):
    DLIB68 = 68
    GENERIC = 0

    @classmethod
    def of(cls, points: Sequence[Point]) -> "Topology":
        return cls.DLIB68 if len(points) == NUM_LANDMARKS else cls.GENERIC

    def index_map(self, n: int) -> Tuple[int, ...]:
        if self is Topology.DLIB68:
            if n != NUM_LANDMARKS:
                raise SizeMismatchError(f"DLIB68 topology needs 68 points, got {n}")
            return _DLIB68_MIRROR
        return tuple(range(n))


def average_point(points: Sequence[Point]) -> Point:
    if len(points) == 0:
        raise DegenerateInputError("Cannot average an empty point set")
    pts = np.asarray(points, dtype=np.float64)
    mean = pts.mean(axis=0)
    return (float(mean[0]), float(mean[1]))


def average_markers(a: Sequence[Point], b: Sequence[Point]) -> list[Point]:
    if len(a) != len(b):
        raise SizeMismatchError(f"Point sets differ in length: {len(a)} vs {len(b)}")
    return [((pa[0] + pb[0]) / 2, (pa[1] + pb[1]) / 2) for pa, pb in zip(a, b)]


def clamp_point(point: Point, size: Tuple[int, int]) -> Point:
    h, w = size
    x, y = point
    return (min(max(x, 0), w - 1), min(max(y, 0), h - 1))


def clamp_landmarks(
    landmarks: Sequence[Point], size: Tuple[int, int]
) -> list[Tuple[int, int]]:
    h, w = size
    clamped = []
    for x, y in landmarks:
        clamped.append((int(np.clip(round(x), 0, w - 1)), int(np.clip(round(y), 0, h - 1))))
    return clamped


def is_point_inside(point: Point, size: Tuple[int, int]) -> bool:
    h, w = size
    return 0 <= point[0] < w and 0 <= point[1] < h


def euclidean_distance(p1: Point, p2: Point) -> float:
    return math.hypot(p1[0] - p2[0], p1[1] - p2[1])


def point_on_circle(
    center: Point, radius: float, theta: float, size: Tuple[int, int]
) -> Point:
    """Point at `theta` degrees on a circle, clamped into the image."""
    rad = math.radians(theta)
    point = (center[0] + radius * math.cos(rad), center[1] + radius * math.sin(rad))
    return clamp_point(point, size)


def scale_points(
    points: Sequence[Point], ratio: float, origin: Point, size: Tuple[int, int]
) -> list[Point]:
    ox, oy = origin
    return [
        clamp_point((round((x - ox) * ratio + ox), round((y - oy) * ratio + oy)), size)
        for x, y in points
    ]


def translate_points(
    points: Sequence[Point], shift: Point, size: Tuple[int, int]
) -> list[Point]:
    return [clamp_point((x + shift[0], y + shift[1]), size) for x, y in points]


def resample_contour(points: Sequence[Point], count: int) -> list[Point]:
    """Resample a closed contour into `count` points evenly spaced by arc length."""
    if count < 1:
        raise DegenerateInputError("count must be positive")
    if len(points) < 2:
        raise DegenerateInputError("A contour needs at least two points")

    pts = np.asarray(points, dtype=np.float64)
    closed = np.vstack([pts, pts[:1]])
    seg_len = np.hypot(*np.diff(closed, axis=0).T)
    cum = np.concatenate([[0.0], np.cumsum(seg_len)])
    total = cum[-1]
    if total == 0:
        raise DegenerateInputError("Contour has zero length")

    targets = np.arange(count, dtype=np.float64) * (total / count)
    seg = np.searchsorted(cum, targets, side="right") - 1
    seg = np.clip(seg, 0, len(seg_len) - 1)
    lengths = seg_len[seg]
    t = np.where(lengths > 0, (targets - cum[seg]) / np.where(lengths > 0, lengths, 1), 0.0)

    a = closed[seg]
    b = closed[seg + 1]
    out = a + t[:, None] * (b - a)
    return [(float(x), float(y)) for x, y in out]


def rotate_180(
    points: Sequence[Point], size: Tuple[int, int], topology: Topology | None = None
) -> list[Point]:
    """Rotate points by 180 degrees inside an image of `size` (h, w)."""
    h, w = size
    topology = topology or Topology.of(points)
    index_map = topology.index_map(len(points))
    result: list[Point] = [(0.0, 0.0)] * len(points)
    for i, (x, y) in enumerate(points):
        result[index_map[i]] = (w - x, h - y)
    return result


def get_head_area_rect(
    landmarks: Sequence[Point], img_size: Tuple[int, int]
) -> Tuple[int, int, int, int]:
    """Face-aligned head box (x, y, w, h) from contour points 0, 8 and 16.

    The box is padded by 10% of the jaw width on each side, 20% of the
    height above and 40% below, then clamped to the image. Edges are floored
    from the padded float box so `x + w` is `floor(xf + wf)`.
    """
    if len(landmarks) != NUM_LANDMARKS:
        raise SizeMismatchError(f"Expected 68 landmarks, got {len(landmarks)}")
    img_h, img_w = img_size
    pts = np.asarray(landmarks, dtype=np.float64)
    width = pts[16, 0] - pts[0, 0]
    higher_y = min(pts[0, 1], pts[16, 1])
    height = pts[8, 1] - (higher_y - width / 2.0)

    xf = max(pts[0, 0] - width * 0.1, 0.0)
    yf = max((higher_y - width / 2.0) - height * 0.2, 0.0)
    wf = min(width * 1.2, img_w - xf)
    hf = min(height * 1.4, img_h - yf)

    x0 = min(math.floor(xf), img_w - 1)
    y0 = min(math.floor(yf), img_h - 1)
    x1 = min(max(math.floor(xf + wf), x0 + 1), img_w)
    y1 = min(max(math.floor(yf + hf), y0 + 1), img_h)
    return (x0, y0, x1 - x0, y1 - y0)
