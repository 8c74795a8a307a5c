import math
from typing import Sequence, Tuple

import numpy as np
import torch
import torch.nn.functional as F

from .errors import SizeMismatchError
from .image_utils import _to_numpy_image, _to_tensor

__all__ = [
    "_calc_mls_delta",
    "dense_displacement",
    "warp_mls_similarity",
]


def _as_points(points, device: torch.device | None) -> torch.Tensor:
    if isinstance(points, torch.Tensor):
        return points.to(device, dtype=torch.float64).reshape(-1, 2)
    return torch.as_tensor(
        np.asarray(points, dtype=np.float64).reshape(-1, 2), device=device
    )


def _calc_mls_delta(
    src_points: torch.Tensor,
    dst_points: torch.Tensor,
    grid_points_x: Sequence[int],
    grid_points_y: Sequence[int],
    device: torch.device | None = None,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Compute the similarity MLS displacement at grid nodes only.

    Grid nodes live in the output frame. `dst_points` are the control points in
    that frame and `src_points` their positions in the source image, so the
    returned (rdx, rdy) point from an output node to its source location.
    """
    device = device or src_points.device
    new_pts = src_points.to(device, dtype=torch.float64)
    old_pts = dst_points.to(device, dtype=torch.float64)
    if new_pts.shape != old_pts.shape:
        raise SizeMismatchError(
            f"Point sets differ in length: {new_pts.shape[0]} vs {old_pts.shape[0]}"
        )

    xs_t = torch.as_tensor(list(grid_points_x), device=device, dtype=torch.float64)
    ys_t = torch.as_tensor(list(grid_points_y), device=device, dtype=torch.float64)
    grid_h = ys_t.numel()
    grid_w = xs_t.numel()

    rdx_flat = torch.zeros(grid_h * grid_w, device=device, dtype=torch.float64)
    rdy_flat = torch.zeros_like(rdx_flat)

    # Fewer than two correspondences: identity warp.
    if old_pts.shape[0] < 2:
        return rdx_flat.view(grid_h, grid_w), rdy_flat.view(grid_h, grid_w)

    grid_y, grid_x = torch.meshgrid(ys_t, xs_t, indexing="ij")
    grid_pts = torch.stack([grid_x, grid_y], dim=-1).reshape(-1, 2)  # (G, 2) in (x, y)

    diff = grid_pts[:, None, :] - old_pts[None, :, :]  # (G, N, 2)
    dist2 = (diff * diff).sum(dim=-1)  # (G, N)

    # Grid node coincides with a control point: it maps onto its partner exactly.
    has_anchor = dist2 == 0
    anchor_hit = has_anchor.any(dim=1)
    anchor_idx = has_anchor.long().argmax(dim=1)

    if anchor_hit.any():
        anchor_targets = new_pts[anchor_idx[anchor_hit]]
        anchor_pts = grid_pts[anchor_hit]
        rdx_flat[anchor_hit] = anchor_targets[:, 0] - anchor_pts[:, 0]
        rdy_flat[anchor_hit] = anchor_targets[:, 1] - anchor_pts[:, 1]

    work_mask = ~anchor_hit
    if work_mask.any():
        gp = grid_pts[work_mask]  # (M, 2)
        w = 1.0 / dist2[work_mask]  # (M, N)

        sw = w.sum(dim=1, keepdim=True)
        pstar = (w @ old_pts) / sw  # (M, 2)
        qstar = (w @ new_pts) / sw

        pi = old_pts.unsqueeze(0) - pstar.unsqueeze(1)  # (M, N, 2)
        pij = torch.stack([-pi[..., 1], pi[..., 0]], dim=-1)

        miu_s = (w * (pi * pi).sum(dim=-1)).sum(dim=1)
        miu_s = miu_s.clamp_min(1e-12)  # all control points on one spot

        cur_v = gp - pstar
        cur_vj = torch.stack([-cur_v[:, 1], cur_v[:, 0]], dim=-1)

        dot_pi_cv = (pi * cur_v.unsqueeze(1)).sum(dim=-1)
        dot_pij_cv = (pij * cur_v.unsqueeze(1)).sum(dim=-1)
        dot_pi_cvj = (pi * cur_vj.unsqueeze(1)).sum(dim=-1)
        dot_pij_cvj = (pij * cur_vj.unsqueeze(1)).sum(dim=-1)

        new_x = new_pts[:, 0]
        new_y = new_pts[:, 1]
        coeff = w / miu_s.unsqueeze(1)

        tmp_x = (dot_pi_cv * new_x - dot_pij_cv * new_y) * coeff
        tmp_y = (-dot_pi_cvj * new_x + dot_pij_cvj * new_y) * coeff

        new_p = torch.stack(
            [tmp_x.sum(dim=1) + qstar[:, 0], tmp_y.sum(dim=1) + qstar[:, 1]], dim=1
        )

        rdx_flat[work_mask] = new_p[:, 0] - gp[:, 0]
        rdy_flat[work_mask] = new_p[:, 1] - gp[:, 1]

    return rdx_flat.view(grid_h, grid_w), rdy_flat.view(grid_h, grid_w)


def dense_displacement(
    src_points,
    dst_points,
    out_size: Tuple[int, int],
    *,
    grid_size: int = 10,
    device: torch.device | None = None,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Per-pixel (dx, dy) of shape out_size, bilinear between grid nodes."""
    if grid_size < 1:
        raise ValueError("grid_size must be >= 1")
    h, w = out_size
    src = _as_points(src_points, device)
    dst = _as_points(dst_points, device)

    # Uniform grid extended past the border so every pixel sits inside a cell.
    max_x = int(math.ceil((w - 1) / grid_size) * grid_size)
    max_y = int(math.ceil((h - 1) / grid_size) * grid_size)
    xs = list(range(0, max_x + 1, grid_size))
    ys = list(range(0, max_y + 1, grid_size))

    rdx, rdy = _calc_mls_delta(src, dst, xs, ys, device=device)

    coarse = torch.stack([rdx, rdy], dim=0).unsqueeze(0)
    dense = F.interpolate(
        coarse, size=(max_y + 1, max_x + 1), mode="bilinear", align_corners=True
    )
    dense = dense[:, :, :h, :w]
    return dense[0, 0], dense[0, 1]


def warp_mls_similarity(
    image: np.ndarray,
    src_points,
    dst_points,
    *,
    out_size: Tuple[int, int] | None = None,
    grid_size: int = 10,
    trans_ratio: float = 1.0,
    device: torch.device | None = None,
) -> np.ndarray:
    """Warp image using Moving Least Squares (similarity).

    `src_points` are landmark positions in `image`, `dst_points` the positions
    they should land on in the output of size `out_size` (h, w).
    """
    if not 0.0 <= trans_ratio <= 1.0:
        raise ValueError("trans_ratio must lie in [0, 1]")
    src_h, src_w = image.shape[:2]
    h, w = out_size if out_size is not None else (src_h, src_w)

    dense_dx, dense_dy = dense_displacement(
        src_points, dst_points, (h, w), grid_size=grid_size, device=device
    )

    base_y, base_x = torch.meshgrid(
        torch.arange(h, device=device, dtype=torch.float64),
        torch.arange(w, device=device, dtype=torch.float64),
        indexing="ij",
    )
    sample_x = (base_x + dense_dx * trans_ratio).clamp(0, src_w - 1)
    sample_y = (base_y + dense_dy * trans_ratio).clamp(0, src_h - 1)

    norm_x = (sample_x / max(src_w - 1, 1)) * 2 - 1
    norm_y = (sample_y / max(src_h - 1, 1)) * 2 - 1
    grid = torch.stack([norm_x, norm_y], dim=-1).unsqueeze(0)

    img = _to_tensor(image, device=device).to(torch.float64)
    # align_corners=True keeps integer sample positions on pixel centres.
    warped = F.grid_sample(
        img, grid, mode="bilinear", padding_mode="border", align_corners=True
    )
    return _to_numpy_image(warped, squeeze_gray=image.ndim == 2)
