from multiprocessing.pool import ThreadPool
from pathlib import Path
from typing import Tuple

import numpy as np
import torch
from tqdm import tqdm

from ..consts import CUBE_SIZE, LAMBDA_APP, LAMBDA_POS, SEARCH_RADIUS
from .errors import SizeMismatchError
from .image_utils import _ensure_grayscale, _to_uint8

__all__ = [
    "look_up_cell",
    "split_slabs",
    "compute_look_up_cube",
    "save_look_up_cube",
    "load_look_up_cube",
]

# High 32 bits of a packed score hold the error, low 32 bits (row << 16) | col,
# so an int64 min picks the lowest error and then the first pixel in scan order.
_K_INF = 1 << 30
_LOW_MASK = 0xFFFFFFFF


def _prepare_guides(
    style_pos_guide: np.ndarray, style_app_guide: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    pos = _to_uint8(style_pos_guide)
    if pos.ndim != 3 or pos.shape[2] < 3:
        raise ValueError("style_pos_guide must be HxWx3")
    app = _ensure_grayscale(style_app_guide)
    if app.shape != pos.shape[:2]:
        raise SizeMismatchError(
            f"Guides differ in size: pos {pos.shape[:2]} vs app {app.shape}"
        )
    if max(app.shape) > 0xFFFF:
        raise ValueError("Guides larger than 65535 pixels per side are not supported")
    return pos[..., 2], pos[..., 1], app


def look_up_cell(
    style_pos_guide: np.ndarray,
    style_app_guide: np.ndarray,
    x: int,
    y: int,
    z: int,
    lambda_pos: int = LAMBDA_POS,
    lambda_app: int = LAMBDA_APP,
    search_radius: int = SEARCH_RADIUS,
) -> Tuple[int, int]:
    """Brute-force (col, row) for one cube cell; reference for the vectorized path."""
    pos_r, pos_g, app = _prepare_guides(style_pos_guide, style_app_guide)
    h, w = app.shape
    seed_col = (x * w) // CUBE_SIZE
    seed_row = (y * h) // CUBE_SIZE
    best = (seed_col, seed_row)
    min_error = None
    for row in range(max(0, seed_row - search_radius), min(h, seed_row + search_radius)):
        for col in range(max(0, seed_col - search_radius), min(w, seed_col + search_radius)):
            error = lambda_pos * (
                abs(int(pos_g[row, col]) - y) + abs(int(pos_r[row, col]) - x)
            ) + lambda_app * abs(int(app[row, col]) - z)
            if min_error is None or error < min_error:
                min_error = error
                best = (col, row)
    return best


def split_slabs(num_workers: int, size: int = CUBE_SIZE) -> list[tuple[int, int]]:
    """Contiguous [start, end) ranges along the R axis, one per worker."""
    num_workers = max(1, min(int(num_workers), size))
    block = -(-size // num_workers)
    return [(s, min(s + block, size)) for s in range(0, size, block)]


def _compute_slab(
    x_range: tuple[int, int],
    pos_r: torch.Tensor,
    pos_g: torch.Tensor,
    app: torch.Tensor,
    lambda_pos: int,
    lambda_app: int,
    search_radius: int,
) -> np.ndarray:
    x_start, x_end = x_range
    device = pos_r.device
    h, w = app.shape
    n = CUBE_SIZE

    out = np.empty((x_end - x_start, n, n, 2), dtype=np.uint16)

    y_indices = torch.arange(n, device=device, dtype=torch.int64)
    seed_rows = (y_indices * h) // n
    r_starts = (seed_rows - search_radius).clamp(min=0)
    r_ends = (seed_rows + search_radius).clamp(max=h)

    # Rows of every y window, padded to the full window height and masked.
    win_h = 2 * search_radius
    abs_rows = r_starts.unsqueeze(1) + torch.arange(win_h, device=device).unsqueeze(0)
    valid_rows = abs_rows < r_ends.unsqueeze(1)
    abs_rows = abs_rows.clamp(max=h - 1)

    z_idx = torch.arange(n, device=device, dtype=torch.int64)
    app_step = z_idx * (int(lambda_app) << 32)
    init_val = _K_INF << 32
    batch_offset = (y_indices * n).view(n, 1, 1)
    y_view = y_indices.view(n, 1, 1)

    for x in range(x_start, x_end):
        seed_col = (x * w) // n
        c_start = max(0, seed_col - search_radius)
        c_end = min(w, seed_col + search_radius)

        seed_c = torch.full((n, n), seed_col, device=device, dtype=torch.int64)
        seed_r = seed_rows.unsqueeze(1).expand(n, n)

        if c_end <= c_start:
            out[x - x_start, :, :, 0] = seed_c.cpu().numpy()
            out[x - x_start, :, :, 1] = seed_r.cpu().numpy()
            continue

        patches_r = pos_r[:, c_start:c_end][abs_rows]  # (256, win_h, W_strip)
        patches_g = pos_g[:, c_start:c_end][abs_rows]
        patches_app = app[:, c_start:c_end][abs_rows]

        base_err = (torch.abs(patches_g - y_view) + torch.abs(patches_r - x)) * lambda_pos
        full_mask = valid_rows.unsqueeze(2).expand_as(base_err)
        base_err = torch.where(full_mask, base_err, torch.full_like(base_err, _K_INF))

        cols = torch.arange(c_start, c_end, device=device, dtype=torch.int64).view(1, 1, -1)
        packed_coords = (abs_rows.unsqueeze(2) << 16) | cols
        scores = (base_err << 32) | packed_coords

        keys = (patches_app + batch_offset).reshape(-1)
        min_scores = torch.full((n * n,), init_val, device=device, dtype=torch.int64)
        min_scores.scatter_reduce_(
            0, keys, scores.reshape(-1), reduce="amin", include_self=True
        )
        best = min_scores.view(n, n)  # (y, app value)

        # cost(z) = min_a best[a] + lambda_app * |a - z|, as prefix/suffix minima.
        forward = torch.cummin(best - app_step, dim=1).values + app_step
        best_rev = torch.flip(best, dims=[1])
        backward = torch.cummin(best_rev - app_step, dim=1).values + app_step
        backward = torch.flip(backward, dims=[1])
        final = torch.minimum(forward, backward)

        coords = final & _LOW_MASK
        final_rows = coords >> 16
        final_cols = coords & 0xFFFF

        invalid = (final >> 32) >= _K_INF
        final_cols = torch.where(invalid, seed_c, final_cols)
        final_rows = torch.where(invalid, seed_r, final_rows)

        out[x - x_start, :, :, 0] = final_cols.cpu().numpy()
        out[x - x_start, :, :, 1] = final_rows.cpu().numpy()

    return out


def compute_look_up_cube(
    style_pos_guide: np.ndarray,
    style_app_guide: np.ndarray,
    lambda_pos: int = LAMBDA_POS,
    lambda_app: int = LAMBDA_APP,
    search_radius: int = SEARCH_RADIUS,
    num_workers: int = 1,
    device: str | torch.device | None = None,
    show_progress: bool = True,
) -> np.ndarray:
    """
    Dense nearest-neighbour table over the (R, G, app) guide space.

    Returns a (256, 256, 256, 2) uint16 array; entry [r, g, a] holds the
    (column, row) of the style pixel minimising
    lambda_pos * (|G - g| + |R - r|) + lambda_app * |A - a| inside the search
    window around the seed (r * w / 256, g * h / 256). Exact ties resolve to
    the first pixel in row-major order.

    The R axis is split into `num_workers` contiguous slabs evaluated on a
    thread pool. Slabs only read the guides and fill disjoint ranges, so the
    result does not depend on the number of workers.
    """
    if search_radius < 1:
        raise ValueError("search_radius must be >= 1")
    pos_r_np, pos_g_np, app_np = _prepare_guides(style_pos_guide, style_app_guide)
    device = torch.device(device) if device is not None else torch.device("cpu")

    # Private copies: nothing outside this call can mutate them while slabs run.
    pos_r = torch.from_numpy(pos_r_np.astype(np.int64)).to(device)
    pos_g = torch.from_numpy(pos_g_np.astype(np.int64)).to(device)
    app = torch.from_numpy(app_np.astype(np.int64)).to(device)

    slabs = split_slabs(num_workers)

    def run(x_range: tuple[int, int]) -> np.ndarray:
        return _compute_slab(
            x_range, pos_r, pos_g, app, int(lambda_pos), int(lambda_app), int(search_radius)
        )

    with ThreadPool(len(slabs)) as pool:
        results = pool.imap(run, slabs)
        if show_progress:
            results = tqdm(results, total=len(slabs), desc="Computing LUT")
        parts = list(results)

    return np.concatenate(parts, axis=0)


def save_look_up_cube(lut: np.ndarray, path: Path | str) -> Path:
    arr = np.asarray(lut, dtype="<u2")
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    arr.tofile(path)
    return Path(path)


def load_look_up_cube(path: Path | str) -> np.ndarray:
    if not Path(path).exists():
        raise FileNotFoundError(f"Lookup cube not found: {path}")
    data = np.fromfile(path, dtype="<u2")
    expected = CUBE_SIZE * CUBE_SIZE * CUBE_SIZE * 2
    if data.size != expected:
        raise ValueError(f"Unexpected LUT size {data.size}, expected {expected}")
    return data.astype(np.uint16).reshape((CUBE_SIZE, CUBE_SIZE, CUBE_SIZE, 2))
