"""
Conversion of MediaPipe face-mesh landmarks into the 68-point dlib layout.

Each dlib index is taken from one or two mesh vertices; pairs are averaged.
Table after https://github.com/PeizhiYan/Mediapipe_2_Dlib_Landmarks
"""

from typing import Sequence, Tuple

import numpy as np

from .errors import SizeMismatchError

__all__ = [
    "MP2DLIB_CORRESPONDENCE",
    "mediapipe_to_dlib",
    "denormalize_landmarks",
]


MP2DLIB_CORRESPONDENCE: Tuple[Tuple[int, int], ...] = (
    # Face contour
    (127, 127), (234, 234), (93, 93), (132, 58), (58, 172), (136, 136),
    (150, 150), (176, 176), (152, 152), (400, 400), (379, 379), (365, 365),
    (397, 288), (361, 361), (323, 323), (454, 454), (356, 356),
    # Right brow
    (70, 70), (63, 63), (105, 105), (66, 66), (107, 107),
    # Left brow
    (336, 336), (296, 296), (334, 334), (293, 293), (300, 300),
    # Nose
    (168, 6), (197, 195), (5, 5), (4, 4), (75, 75), (97, 97), (2, 2),
    (326, 326), (305, 305),
    # Right eye
    (33, 33), (160, 160), (158, 158), (133, 133), (153, 153), (144, 144),
    # Left eye
    (362, 362), (385, 385), (387, 387), (263, 263), (373, 373), (380, 380),
    # Upper lip, outer
    (61, 61), (39, 39), (37, 37), (0, 0), (267, 267), (269, 269), (291, 291),
    # Lower lip, outer
    (321, 321), (314, 314), (17, 17), (84, 84), (91, 91),
    # Upper lip, inner
    (78, 78), (82, 82), (13, 13), (312, 312), (308, 308),
    # Lower lip, inner
    (317, 317), (14, 14), (87, 87),
)

_MP_INDEX = np.asarray(MP2DLIB_CORRESPONDENCE, dtype=np.int64)  # (68, 2)


def mediapipe_to_dlib(faces) -> list[np.ndarray]:
    """
    Convert MediaPipe face-mesh landmark sets into 68-point sets.

    Args:
        faces: Sequence of faces, each an (N, 2) or (N, 3) array-like of
            normalized coordinates (N = 468 or 478).

    Returns:
        One (68, 3) float array of normalized (x, y, z) per face; z is 0 when
        the input carries no depth.
    """
    converted = []
    for face in faces:
        pts = np.asarray(face, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] not in (2, 3):
            raise ValueError(f"Expected (N, 2) or (N, 3) landmarks, got {pts.shape}")
        if pts.shape[0] <= int(_MP_INDEX.max()):
            raise SizeMismatchError(
                f"Face mesh needs at least {int(_MP_INDEX.max()) + 1} points, got {pts.shape[0]}"
            )
        if pts.shape[1] == 2:
            pts = np.concatenate([pts, np.zeros((pts.shape[0], 1))], axis=1)
        converted.append((pts[_MP_INDEX[:, 0]] + pts[_MP_INDEX[:, 1]]) / 2.0)
    return converted


def denormalize_landmarks(points, width: int, height: int) -> list[Tuple[int, int]]:
    """Normalized [0, 1] coordinates -> rounded pixel coordinates."""
    pts = np.asarray(points, dtype=np.float64)
    xs = np.floor(pts[:, 0] * width + 0.5).astype(np.int64)
    ys = np.floor(pts[:, 1] * height + 0.5).astype(np.int64)
    return [(int(x), int(y)) for x, y in zip(xs, ys)]
