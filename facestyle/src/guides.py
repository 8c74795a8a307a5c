import math
from typing import Sequence, Tuple

import numpy as np
import torch
import torch.nn.functional as F

from ..consts import GRID_SIZE, MEAN, PYR_KERNEL, PYR_KERNEL_SUM
from .errors import SizeMismatchError
from .image_utils import _ensure_grayscale
from .warping import warp_mls_similarity

__all__ = [
    "to_luminance",
    "gradient_guide",
    "appearance_levels",
    "pyr_down",
    "upscale_bilinear",
    "get_app_guide",
    "gray_hist_matching",
    "position_guide",
]


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def to_luminance(image: np.ndarray) -> np.ndarray:
    """Rounded BT.601 luma of a BGR image (grayscale input passes through)."""
    return _ensure_grayscale(image)


def gradient_guide(width: int, height: int, draw_grid: bool = False) -> np.ndarray:
    """Positional gradient guide: R encodes the column, G the row (BGR order)."""
    cols = (np.arange(width, dtype=np.int64) * 256) // width
    rows = (np.arange(height, dtype=np.int64) * 256) // height
    guide = np.zeros((height, width, 3), dtype=np.uint8)
    guide[..., 2] = cols[None, :].astype(np.uint8)
    guide[..., 1] = rows[:, None].astype(np.uint8)
    if draw_grid:
        guide[GRID_SIZE::GRID_SIZE, :] = 255
        guide[:, GRID_SIZE::GRID_SIZE] = 255
    return guide


def appearance_levels(width: int) -> int:
    """Number of pyramid levels used for the appearance residual."""
    if width < 256:
        return 0
    return max(0, int(math.floor(math.log2(width / 256.0))))


def _pyr_kernel(device: torch.device | None) -> torch.Tensor:
    k = torch.tensor(PYR_KERNEL, dtype=torch.float64, device=device)
    return (torch.outer(k, k) / PYR_KERNEL_SUM).view(1, 1, 5, 5)


def pyr_down(gray: np.ndarray, levels: int, device: torch.device | None = None) -> np.ndarray:
    """Repeated 5x5 binomial blur + half-size decimation with clamped borders."""
    t = torch.from_numpy(gray.astype(np.float64)).to(device).view(1, 1, *gray.shape)
    kernel = _pyr_kernel(device)
    for _ in range(levels):
        h, w = t.shape[-2:]
        new_h, new_w = h // 2, w // 2
        if new_h == 0 or new_w == 0:
            break
        padded = F.pad(t, (2, 2, 2, 2), mode="replicate")
        blurred = F.conv2d(padded, kernel)
        t = torch.floor(blurred[..., 0 : 2 * new_h : 2, 0 : 2 * new_w : 2] + 0.5)
    return t[0, 0].cpu().numpy().astype(np.uint8)


def upscale_bilinear(small: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """Corner-aligned bilinear upscale of a single-channel image to size (h, w)."""
    t = torch.from_numpy(small.astype(np.float64)).view(1, 1, *small.shape)
    up = F.interpolate(t, size=size, mode="bilinear", align_corners=True)
    return _round_half_up(up[0, 0].numpy()).astype(np.uint8)


def get_app_guide(
    image: np.ndarray,
    stretch_hist: bool = True,
    levels: int | None = None,
    device: torch.device | None = None,
) -> np.ndarray:
    """
    Appearance guide: luminance minus its low-pass copy, centred at mid grey.

    The low-pass copy is the image taken `levels` steps down a Gaussian pyramid
    and scaled back up. With `stretch_hist` the result gets a symmetric
    histogram stretch around 128.
    """
    gray = _ensure_grayscale(image)
    h, w = gray.shape
    if levels is None:
        levels = appearance_levels(w)

    if levels > 0:
        small = pyr_down(gray, levels, device=device)
        blur = upscale_bilinear(small, (h, w))
    else:
        blur = gray

    diff = gray.astype(np.float64) - blur.astype(np.float64)
    result = np.clip(np.trunc(diff / 2.0) + MEAN, 0, 255).astype(np.uint8)

    if not stretch_hist:
        return result

    min_val = int(result.min())
    max_val = int(result.max())
    margin = min(min_val, 255 - max_val)
    new_min = margin
    span = (255 - margin) - new_min

    stretched = ((result.astype(np.float64) - new_min) / float(span)) * 255.0
    return _round_half_up(np.clip(stretched, 0, 255)).astype(np.uint8)


def gray_hist_matching(input_gray: np.ndarray, ref_gray: np.ndarray) -> np.ndarray:
    src = _ensure_grayscale(input_gray)
    ref = _ensure_grayscale(ref_gray)
    if src.size != ref.size:
        raise SizeMismatchError(
            f"Histogram matching needs equal pixel counts, got {src.size} and {ref.size}"
        )
    if src.size == 0:
        return src.copy()

    src_pdf = np.bincount(src.ravel(), minlength=256) / float(src.size)
    ref_pdf = np.bincount(ref.ravel(), minlength=256) / float(ref.size)

    src_cdf = _round_half_up(np.cumsum(src_pdf) * 255.0)
    ref_cdf = _round_half_up(np.cumsum(ref_pdf) * 255.0)

    # argmin returns the first j with minimal distance, i.e. ascending scan order.
    dist = np.abs(src_cdf[:, None] - ref_cdf[None, :])
    mapping = np.argmin(dist, axis=1).astype(np.uint8)
    return mapping[src]


def position_guide(
    style_landmarks: Sequence[Tuple[float, float]],
    target_landmarks: Sequence[Tuple[float, float]],
    style_size: Tuple[int, int],
    target_size: Tuple[int, int],
    *,
    style_pos_guide: np.ndarray | None = None,
    grid_size: int = GRID_SIZE,
    trans_ratio: float = 1.0,
    draw_grid: bool = False,
    device: torch.device | None = None,
) -> np.ndarray:
    """Deform the style gradient onto the target face geometry."""
    if len(style_landmarks) != len(target_landmarks):
        raise SizeMismatchError(
            f"Landmark sets differ in length: {len(style_landmarks)} vs {len(target_landmarks)}"
        )
    if style_pos_guide is None:
        style_pos_guide = gradient_guide(style_size[1], style_size[0], draw_grid=draw_grid)
    return warp_mls_similarity(
        style_pos_guide,
        style_landmarks,
        target_landmarks,
        out_size=target_size,
        grid_size=grid_size,
        trans_ratio=trans_ratio,
        device=device,
    )
