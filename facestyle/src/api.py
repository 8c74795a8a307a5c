import time
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import torch

from ..config import EngineConfig
from . import ops
from .errors import SizeMismatchError
from .io_utils import get_timestamp
from .store import MemoryStyleStore, StyleAsset, StyleStore, compute_style_asset

__all__ = ["FaceBlit", "StylizationResult"]


@dataclass
class StylizationResult:
    """
    Output of one `FaceBlit.stylize` call.

    `image` has the size of the input image. The guides, the chunk map and the
    rect are in the working resolution, which is the style image's size.
    """

    image: np.ndarray
    target_pos_guide: np.ndarray
    target_app_guide: np.ndarray
    covered_pixels: np.ndarray
    stylization_rect: Tuple[int, int, int, int]

    @property
    def num_chunks(self) -> int:
        return int(self.covered_pixels.max()) if self.covered_pixels.size else 0


def _to_bgr(image: np.ndarray) -> np.ndarray:
    img = ops._to_uint8(image)
    if img.ndim == 2:
        return np.repeat(img[:, :, None], 3, axis=2)
    if img.shape[2] == 1:
        return np.repeat(img, 3, axis=2)
    return img[..., :3]


class FaceBlit:
    """Example-based facial style transfer driven by landmarks."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        store: StyleStore | None = None,
    ):
        self.config = config or EngineConfig()
        self.store = store if store is not None else MemoryStyleStore()
        self.device = torch.device(self.config.device)
        self.style: StyleAsset | None = None

    # ------------------------------------------------------------------
    # Loading / setup
    # ------------------------------------------------------------------
    def _ensure_loaded(self) -> StyleAsset:
        if self.style is None:
            raise RuntimeError("Style not loaded. Call load_style, set_style or add_style first.")
        return self.style

    def set_style(self, asset: StyleAsset) -> None:
        self.style = asset
        h, w = asset.size
        print(f"[{get_timestamp()}] [FaceBlit] Style '{asset.name}' set ({w}x{h})")

    def load_style(self, name: str) -> StyleAsset:
        asset = self.store.load(name)
        if asset is None:
            raise KeyError(f"Style '{name}' not found in store")
        self.set_style(asset)
        return asset

    def add_style(
        self, name: str, image: np.ndarray, landmarks: Sequence[Tuple[int, int]]
    ) -> StyleAsset:
        """Author a style (guides + lookup cube), persist it and make it current."""
        style_img = _to_bgr(image)
        style_landmarks = ops.clamp_landmarks(landmarks, style_img.shape[:2])
        asset = compute_style_asset(name, style_img, style_landmarks, self.config)
        self.store.save(name, asset)
        self.set_style(asset)
        return asset

    # ------------------------------------------------------------------
    # Stylization
    # ------------------------------------------------------------------
    def stylize(
        self, image: np.ndarray, landmarks: Sequence[Tuple[float, float]]
    ) -> StylizationResult:
        style = self._ensure_loaded()
        if len(landmarks) != len(style.landmarks):
            raise SizeMismatchError(
                f"Target has {len(landmarks)} landmarks, style has {len(style.landmarks)}"
            )

        start_time = time.time()
        cfg = self.config
        target_img = _to_bgr(image)
        orig_h, orig_w = target_img.shape[:2]
        style_h, style_w = style.size

        # The stylizer works at the style's resolution.
        target_landmarks = [(float(x), float(y)) for x, y in landmarks]
        if (orig_h, orig_w) != (style_h, style_w):
            target_img = ops._resize_torch(target_img, (style_w, style_h))
            sx, sy = style_w / orig_w, style_h / orig_h
            target_landmarks = [(x * sx, y * sy) for x, y in target_landmarks]
        tgt_landmarks = ops.clamp_landmarks(target_landmarks, (style_h, style_w))
        style_landmarks = ops.clamp_landmarks(style.landmarks, (style_h, style_w))

        # MLS deformation of style position guide toward target landmarks
        target_pos_guide = ops.position_guide(
            style_landmarks,
            tgt_landmarks,
            (style_h, style_w),
            (style_h, style_w),
            style_pos_guide=np.asarray(style.pos_guide),
            grid_size=cfg.warp.grid_size,
            trans_ratio=cfg.warp.trans_ratio,
            device=self.device,
        )

        target_app_guide = ops.get_app_guide(
            target_img, stretch_hist=False, levels=cfg.guides.levels, device=self.device
        )
        target_app_guide = ops.gray_hist_matching(target_app_guide, style.app_guide)

        stylization_rect = ops.get_head_area_rect(tgt_landmarks, (style_h, style_w))

        stylized, covered_pixels = ops.style_blit(
            style.pos_guide,
            target_pos_guide,
            style.app_guide,
            target_app_guide,
            style.look_up_cube,
            style.image,
            stylization_rect=stylization_rect,
            threshold=cfg.blit.threshold,
            lambda_pos=cfg.blit.lambda_pos,
            lambda_app=cfg.blit.lambda_app,
            dfs_mode=cfg.blit.dfs_mode,
        )

        if cfg.post.skin_mask_blend:
            stylized = ops.alpha_blend(
                stylized,
                target_img,
                ops.get_skin_mask(target_img, tgt_landmarks),
                kernel_size=cfg.post.blend_kernel,
            )

        if (orig_h, orig_w) != (style_h, style_w):
            stylized = ops._resize_torch(stylized, (orig_w, orig_h))

        result = StylizationResult(
            image=stylized,
            target_pos_guide=target_pos_guide,
            target_app_guide=target_app_guide,
            covered_pixels=covered_pixels,
            stylization_rect=stylization_rect,
        )
        print(
            f"[{get_timestamp()}] [FaceBlit] Stylized {orig_w}x{orig_h} "
            f"in {time.time() - start_time:.3f}s ({result.num_chunks} chunks)"
        )
        return result
