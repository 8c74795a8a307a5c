from collections import deque
from typing import Tuple

import numpy as np
from numba import njit

from ..consts import BLIT_THRESHOLD, CUBE_SIZE, LAMBDA_APP, LAMBDA_POS
from .errors import OutOfBoundsError, SizeMismatchError
from .image_utils import _ensure_grayscale, _to_uint8

_NUMBA_EMPTY_APP = np.zeros((1, 1), dtype=np.int16)

# Axis neighbours in enqueue order: left, right, up, down (dy, dx).
_NEIGHBOURS = ((0, -1), (0, 1), (-1, 0), (1, 0))

__all__ = [
    "compute_guided_error",
    "compute_style_seed_point",
    "seed_grow",
    "style_blit",
]


def compute_guided_error(
    style_pos_guide: np.ndarray,
    target_pos_guide: np.ndarray,
    style_app_guide: np.ndarray | None,
    target_app_guide: np.ndarray | None,
    target_pos: Tuple[int, int],
    style_pos: Tuple[int, int],
    lambda_pos: int,
    lambda_app: int,
) -> int:
    """Compute guided error between target and style pixels."""
    ty, tx = target_pos
    sy, sx = style_pos

    # Position error (L1 distance in position guide space)
    target_pos_vals = target_pos_guide[ty, tx]
    style_pos_vals = style_pos_guide[sy, sx]

    pos_error = abs(int(target_pos_vals[2]) - int(style_pos_vals[2])) + abs(  # R
        int(target_pos_vals[1]) - int(style_pos_vals[1])  # G
    )

    # Appearance error (optionally disabled)
    app_error = 0
    if target_app_guide is not None and style_app_guide is not None:
        app_error = abs(int(target_app_guide[ty, tx]) - int(style_app_guide[sy, sx]))

    return int(lambda_pos * pos_error + lambda_app * app_error)


def _pixel_out_of_range(
    style_pixel: Tuple[int, int],
    target_pixel: Tuple[int, int],
    style_shape: Tuple[int, int],
    target_shape: Tuple[int, int],
) -> bool:
    sy, sx = style_pixel
    ty, tx = target_pixel
    return not (
        0 <= sy < style_shape[0]
        and 0 <= sx < style_shape[1]
        and 0 <= ty < target_shape[0]
        and 0 <= tx < target_shape[1]
    )


def compute_style_seed_point(
    target_pos_guide: np.ndarray,
    target_app_guide: np.ndarray | None,
    look_up_cube: np.ndarray | None,
    row_t: int,
    col_t: int,
    style_shape: Tuple[int, int],
    lambda_app: int,
) -> tuple[int, int]:
    """Style pixel (y, x) that seeds the chunk grown from target pixel (row_t, col_t)."""
    style_h, style_w = style_shape
    pos_vals = target_pos_guide[row_t, col_t]
    pos_r = int(pos_vals[2])
    pos_g = int(pos_vals[1])

    if lambda_app == 0 or target_app_guide is None or look_up_cube is None:
        sx = (pos_r * style_w) // CUBE_SIZE
        sy = (pos_g * style_h) // CUBE_SIZE
    else:
        app_val = int(target_app_guide[row_t, col_t])
        coords = look_up_cube[pos_r, pos_g, app_val]
        sx = int(coords[0])
        sy = int(coords[1])

    if not (0 <= sx < style_w and 0 <= sy < style_h):
        raise OutOfBoundsError(
            f"Seed ({sx}, {sy}) for target pixel ({col_t}, {row_t}) lies outside "
            f"the {style_w}x{style_h} style image"
        )
    return sy, sx


def seed_grow(
    target_seed_point: Tuple[int, int],
    style_seed_point: Tuple[int, int],
    style_pos_guide: np.ndarray,
    target_pos_guide: np.ndarray,
    style_app_guide: np.ndarray | None,
    target_app_guide: np.ndarray | None,
    result_img: np.ndarray,
    style_img: np.ndarray,
    covered_pixels: np.ndarray,
    chunk_number: int,
    threshold: int,
    lambda_pos: int,
    lambda_app: int,
) -> int:
    """Breadth-first growth over offsets from a (target, style) seed pair.

    The seed itself is always taken. Returns the number of claimed pixels.
    """
    style_shape = style_pos_guide.shape[:2]
    target_shape = target_pos_guide.shape[:2]
    ty0, tx0 = target_seed_point
    sy0, sx0 = style_seed_point

    q: deque[tuple[int, int]] = deque()
    q.append((0, 0))
    claimed = 0

    while q:
        dy, dx = q.popleft()
        ty, tx = ty0 + dy, tx0 + dx
        sy, sx = sy0 + dy, sx0 + dx

        if _pixel_out_of_range((sy, sx), (ty, tx), style_shape, target_shape):
            continue
        if covered_pixels[ty, tx] != 0:
            continue

        error = compute_guided_error(
            style_pos_guide,
            target_pos_guide,
            style_app_guide,
            target_app_guide,
            (ty, tx),
            (sy, sx),
            lambda_pos,
            lambda_app,
        )

        if error < threshold or (dy == 0 and dx == 0):
            result_img[ty, tx] = style_img[sy, sx]
            covered_pixels[ty, tx] = chunk_number
            claimed += 1

            for ny, nx in _NEIGHBOURS:
                ndy, ndx = dy + ny, dx + nx
                nt = (ty0 + ndy, tx0 + ndx)
                if _pixel_out_of_range((sy0 + ndy, sx0 + ndx), nt, style_shape, target_shape):
                    continue
                if covered_pixels[nt] == 0:
                    q.append((ndy, ndx))

    return claimed


@njit(cache=True)
def _seed_grow_numba(
    tgt_seed_y: int,
    tgt_seed_x: int,
    sty_seed_y: int,
    sty_seed_x: int,
    style_pos_guide: np.ndarray,
    target_pos_guide: np.ndarray,
    style_app_guide: np.ndarray,
    target_app_guide: np.ndarray,
    result_img: np.ndarray,
    style_img: np.ndarray,
    covered_pixels: np.ndarray,
    chunk_number: int,
    threshold: int,
    lambda_pos: int,
    lambda_app: int,
    use_app: bool,
    q_dy: np.ndarray,
    q_dx: np.ndarray,
) -> int:
    th, tw = target_pos_guide.shape[0], target_pos_guide.shape[1]
    sh, sw = style_pos_guide.shape[0], style_pos_guide.shape[1]
    channels = style_img.shape[2]

    head = 0
    tail = 1
    q_dy[0] = 0
    q_dx[0] = 0
    claimed = 0

    while head < tail:
        dy = q_dy[head]
        dx = q_dx[head]
        head += 1

        ty = tgt_seed_y + dy
        tx = tgt_seed_x + dx
        sy = sty_seed_y + dy
        sx = sty_seed_x + dx

        if sy < 0 or sy >= sh or sx < 0 or sx >= sw:
            continue
        if ty < 0 or ty >= th or tx < 0 or tx >= tw:
            continue
        if covered_pixels[ty, tx] != 0:
            continue

        pos_err = abs(int(target_pos_guide[ty, tx, 2]) - int(style_pos_guide[sy, sx, 2]))
        pos_err += abs(int(target_pos_guide[ty, tx, 1]) - int(style_pos_guide[sy, sx, 1]))

        app_err = 0
        if use_app:
            app_err = abs(int(target_app_guide[ty, tx]) - int(style_app_guide[sy, sx]))

        error = lambda_pos * pos_err + lambda_app * app_err

        if error < threshold or (dy == 0 and dx == 0):
            for c in range(channels):
                result_img[ty, tx, c] = style_img[sy, sx, c]
            covered_pixels[ty, tx] = chunk_number
            claimed += 1

            for k in range(4):
                ndy = dy
                ndx = dx
                if k == 0:
                    ndx = dx - 1
                elif k == 1:
                    ndx = dx + 1
                elif k == 2:
                    ndy = dy - 1
                else:
                    ndy = dy + 1
                nty = tgt_seed_y + ndy
                ntx = tgt_seed_x + ndx
                nsy = sty_seed_y + ndy
                nsx = sty_seed_x + ndx
                if nsy < 0 or nsy >= sh or nsx < 0 or nsx >= sw:
                    continue
                if nty < 0 or nty >= th or ntx < 0 or ntx >= tw:
                    continue
                if covered_pixels[nty, ntx] == 0:
                    q_dy[tail] = ndy
                    q_dx[tail] = ndx
                    tail += 1

    return claimed


def _check_rect(
    rect: Tuple[int, int, int, int], shape: Tuple[int, int]
) -> Tuple[int, int, int, int]:
    x, y, w, h = (int(v) for v in rect)
    if w <= 0 or h <= 0 or x < 0 or y < 0 or x + w > shape[1] or y + h > shape[0]:
        raise OutOfBoundsError(
            f"Stylization rect {(x, y, w, h)} does not fit a {shape[1]}x{shape[0]} target"
        )
    return x, y, w, h


def style_blit(
    style_pos_guide: np.ndarray,
    target_pos_guide: np.ndarray,
    style_app_guide: np.ndarray | None,
    target_app_guide: np.ndarray | None,
    look_up_cube: np.ndarray | None,
    style_image: np.ndarray,
    stylization_rect: Tuple[int, int, int, int] | None = None,
    threshold: int = BLIT_THRESHOLD,
    lambda_pos: int = LAMBDA_POS,
    lambda_app: int = LAMBDA_APP,
    dfs_mode: str = "numba",
) -> tuple[np.ndarray, np.ndarray]:
    """Assemble the target from chunks of the style image.

    Unclaimed pixels of `stylization_rect` are visited in row-major order; each
    one seeds a chunk through the lookup cube (or the position guide alone when
    `lambda_app` is 0) and the chunk grows while the guide error stays below
    `threshold`.

    Args:
        dfs_mode: "numba" for the JIT kernel or "python" for the deque version.
            Both produce identical results.

    Returns:
        (result, covered_pixels): the stylized image with the target's size and
        the style image's channels, and the int32 chunk id map (0 = unassigned).
    """
    if dfs_mode not in ("python", "numba"):
        raise ValueError(f"Unknown dfs_mode: {dfs_mode}")

    h_t, w_t = target_pos_guide.shape[:2]
    style_h, style_w = style_image.shape[:2]
    if style_pos_guide.shape[:2] != (style_h, style_w):
        raise SizeMismatchError(
            f"Style guide {style_pos_guide.shape[:2]} does not match style image {(style_h, style_w)}"
        )

    use_app = lambda_app != 0 and style_app_guide is not None and target_app_guide is not None
    style_app = _ensure_grayscale(style_app_guide) if use_app else None
    target_app = _ensure_grayscale(target_app_guide) if use_app else None
    if use_app:
        if style_app.shape != (style_h, style_w) or target_app.shape != (h_t, w_t):
            raise SizeMismatchError("Appearance guides must match their position guides")

    if stylization_rect is None:
        x, y, w, h = 0, 0, w_t, h_t
    else:
        x, y, w, h = _check_rect(stylization_rect, (h_t, w_t))

    # Pre-cast once to avoid repeated conversions in the inner loop.
    style_pos_int = _to_uint8(style_pos_guide).astype(np.int16)
    target_pos_int = _to_uint8(target_pos_guide).astype(np.int16)
    style_app_int = style_app.astype(np.int16) if use_app else None
    target_app_int = target_app.astype(np.int16) if use_app else None

    style3 = _to_uint8(style_image)
    if style3.ndim == 2:
        style3 = style3[..., None]
    style3 = np.ascontiguousarray(style3)

    result = np.zeros((h_t, w_t, style3.shape[2]), dtype=np.uint8)
    covered_pixels = np.zeros((h_t, w_t), dtype=np.int32)

    if dfs_mode == "numba":
        # Every claim enqueues at most four offsets, claims never exceed h_t * w_t.
        q_dy = np.empty(4 * h_t * w_t + 1, dtype=np.int32)
        q_dx = np.empty_like(q_dy)

    chunk_number = 1
    for row_t in range(y, y + h):
        for col_t in range(x, x + w):
            if covered_pixels[row_t, col_t] != 0:
                continue

            style_seed_point = compute_style_seed_point(
                target_pos_int,
                target_app_int,
                look_up_cube if use_app else None,
                row_t,
                col_t,
                (style_h, style_w),
                lambda_app if use_app else 0,
            )

            if dfs_mode == "numba":
                _seed_grow_numba(
                    row_t,
                    col_t,
                    style_seed_point[0],
                    style_seed_point[1],
                    style_pos_int,
                    target_pos_int,
                    style_app_int if use_app else _NUMBA_EMPTY_APP,
                    target_app_int if use_app else _NUMBA_EMPTY_APP,
                    result,
                    style3,
                    covered_pixels,
                    chunk_number,
                    int(threshold),
                    int(lambda_pos),
                    int(lambda_app),
                    use_app,
                    q_dy,
                    q_dx,
                )
            else:
                seed_grow(
                    (row_t, col_t),
                    style_seed_point,
                    style_pos_int,
                    target_pos_int,
                    style_app_int,
                    target_app_int,
                    result,
                    style3,
                    covered_pixels,
                    chunk_number,
                    int(threshold),
                    int(lambda_pos),
                    int(lambda_app),
                )

            chunk_number += 1

    if style_image.ndim == 2:
        result = result[..., 0]
    return result, covered_pixels
