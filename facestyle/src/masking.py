import math
from typing import Sequence, Tuple

import numpy as np
import torch
import torch.nn.functional as F
from matplotlib.path import Path as MplPath

from ..consts import BLEND_KERNEL_SIZE, SKIN_ERROR_THRESHOLD, SKIN_SAMPLE_STEP
from .errors import SizeMismatchError
from .image_utils import _to_uint8

__all__ = [
    "rgb_to_yuv",
    "sample_color",
    "skin_error",
    "_fill_poly",
    "_fill_ellipse",
    "get_skin_mask",
    "alpha_blend",
]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def rgb_to_yuv(image_bgr: np.ndarray) -> np.ndarray:
    """BGR uint8 -> studio-swing BT.601 YUV (Y in [16, 235]), rounded to uint8."""
    bgr = image_bgr[..., :3].astype(np.float64)
    b, g, r = bgr[..., 0], bgr[..., 1], bgr[..., 2]

    y = 16 + 0.257 * r + 0.504 * g + 0.098 * b
    u = 128 - 0.148 * r - 0.291 * g + 0.439 * b
    v = 128 + 0.439 * r - 0.368 * g - 0.071 * b

    yuv = np.stack([y, u, v], axis=-1)
    return np.clip(np.floor(yuv + 0.5), 0, 255).astype(np.uint8)


def sample_color(
    yuv: np.ndarray, point: Tuple[int, int], step: int = SKIN_SAMPLE_STEP
) -> np.ndarray | None:
    """Mean colour of the 3x3 grid spaced `step` pixels around `point`.

    Grid points outside the image are skipped; returns None when none is inside.
    """
    h, w = yuv.shape[:2]
    px, py = point
    acc = np.zeros(yuv.shape[2], dtype=np.float64)
    count = 0
    for dx in (-step, 0, step):
        for dy in (-step, 0, step):
            x, y = px + dx, py + dy
            if 0 <= x < w and 0 <= y < h:
                acc += yuv[y, x]
                count += 1
    if count == 0:
        return None
    return np.floor(acc / count + 0.5)


def skin_error(sample: np.ndarray, pixels: np.ndarray) -> np.ndarray:
    # Chroma only, luma is ignored.
    diff = pixels[..., 1:3].astype(np.float64) - sample[1:3]
    return (diff * diff).sum(axis=-1)


def _fill_poly(mask: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Set every pixel whose centre lies inside the polygon."""
    h, w = mask.shape
    y_coords, x_coords = np.mgrid[:h, :w]
    coords = np.stack([x_coords.ravel(), y_coords.ravel()], axis=1)

    path = MplPath(points)
    inside = path.contains_points(coords).reshape(h, w)
    mask[inside] = 1
    return mask


def _fill_ellipse(
    mask: np.ndarray, center: Tuple[float, float], axes: Tuple[float, float]
) -> np.ndarray:
    a, b = axes
    if a <= 0 or b <= 0:
        return mask
    h, w = mask.shape
    y_coords, x_coords = np.mgrid[:h, :w]
    cx, cy = center

    # ((x-cx)/a)^2 + ((y-cy)/b)^2 <= 1
    inside = ((x_coords - cx) / a) ** 2 + ((y_coords - cy) / b) ** 2 <= 1
    mask[inside] = 1
    return mask


def get_skin_mask(
    image_bgr: np.ndarray,
    landmarks: Sequence[Tuple[int, int]],
    threshold: float = SKIN_ERROR_THRESHOLD,
) -> np.ndarray:
    """Binary face/skin mask (uint8, 0 or 255) for a 68-point face.

    Three forehead samples classify the pixels above the jaw line by chroma,
    then the jaw contour polygon and a lower-face ellipse are added.
    """
    if len(landmarks) < 17:
        raise SizeMismatchError(f"Skin mask needs the 17 contour landmarks, got {len(landmarks)}")
    h_img, w_img = image_bgr.shape[:2]
    contour = np.asarray([(int(x), int(y)) for x, y in landmarks[:17]], dtype=np.int64)
    x0, y0 = int(contour[0, 0]), int(contour[0, 1])
    face_width = int(contour[16, 0] - contour[0, 0])

    full_mask = np.zeros((h_img, w_img), dtype=np.uint8)

    roi_h_nominal = _round_half_up(face_width * 0.75)
    roi_x = max(x0, 0)
    roi_y = max(y0 - roi_h_nominal, 0)
    roi_w = min(face_width, w_img - roi_x)
    roi_h = min(roi_h_nominal, y0, h_img - roi_y)

    if face_width > 0 and roi_w > 0 and roi_h > 0:
        forehead = rgb_to_yuv(image_bgr[roi_y : roi_y + roi_h, roi_x : roi_x + roi_w])
        quarter = face_width / 4
        sample_y = max(roi_h - _round_half_up(quarter), 0)

        bands = [
            (0, _round_half_up(quarter * 2)),
            (_round_half_up(quarter), _round_half_up(quarter * 3)),
            (_round_half_up(quarter * 2), roi_w),
        ]
        forehead_mask = np.zeros((roi_h, roi_w), dtype=bool)
        for k, (col_start, col_end) in enumerate(bands, start=1):
            sample = sample_color(forehead, (_round_half_up(quarter * k), sample_y))
            if sample is None:
                continue
            col_end = min(col_end, roi_w)
            if col_end <= col_start:
                continue
            band = forehead[:, col_start:col_end]
            forehead_mask[:, col_start:col_end] |= skin_error(sample, band) < threshold

        full_mask[roi_y : roi_y + roi_h, roi_x : roi_x + roi_w][forehead_mask] = 1

    full_mask = _fill_poly(full_mask, contour)

    center = (
        contour[0, 0] + (contour[16, 0] - contour[0, 0]) / 2,
        contour[0, 1] + (contour[16, 1] - contour[0, 1]) / 2,
    )
    axes = (face_width / 2, face_width / 2.5)
    full_mask = _fill_ellipse(full_mask, center, axes)
    return full_mask * 255


def alpha_blend(
    foreground: np.ndarray,
    background: np.ndarray,
    alpha: np.ndarray,
    kernel_size: int = BLEND_KERNEL_SIZE,
) -> np.ndarray:
    """Composite fg * blur(alpha) + bg * (1 - blur(alpha)).

    `alpha` is a uint8 mask (0..255), single channel or one per image channel.
    The box blur averages only the window part that lies inside the image.
    """
    if foreground.shape != background.shape:
        raise SizeMismatchError(
            f"Foreground {foreground.shape} and background {background.shape} differ"
        )
    if alpha.shape[:2] != foreground.shape[:2]:
        raise SizeMismatchError(
            f"Alpha {alpha.shape[:2]} does not match image {foreground.shape[:2]}"
        )

    fg = foreground.astype(np.float32) / 255.0
    bg = background.astype(np.float32) / 255.0
    a = np.asarray(alpha, dtype=np.float32) / 255.0
    if a.ndim == 2:
        a = a[:, :, None]

    half = max(0, int(kernel_size)) // 2
    if half > 0:
        a_t = torch.from_numpy(np.ascontiguousarray(a)).permute(2, 0, 1).unsqueeze(0)
        a_t = F.avg_pool2d(
            a_t, kernel_size=2 * half + 1, stride=1, padding=half, count_include_pad=False
        )
        a = a_t.squeeze(0).permute(1, 2, 0).numpy()

    if fg.ndim == 2:
        fg = fg[:, :, None]
        bg = bg[:, :, None]
    if a.shape[2] != fg.shape[2]:
        if a.shape[2] != 1:
            raise SizeMismatchError("Alpha must have one channel or match the image channels")
        a = np.repeat(a, fg.shape[2], axis=2)
    a = np.clip(a, 0.0, 1.0)
    out = fg * a + bg * (1.0 - a)
    out = _to_uint8(out * 255.0)
    if foreground.ndim == 2:
        out = out[..., 0]
    return out
