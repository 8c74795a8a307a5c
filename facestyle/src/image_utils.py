from typing import Tuple

import numpy as np
import torch
import torch.nn.functional as F

__all__ = [
    "_to_uint8",
    "_ensure_grayscale",
    "_to_tensor",
    "_to_numpy_image",
    "_resize_torch",
]


def _to_uint8(image: np.ndarray) -> np.ndarray:
    if image.dtype == np.uint8:
        return image
    return np.clip(np.rint(image), 0, 255).astype(np.uint8)


def _ensure_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a BGR(A) image to rounded BT.601 luminance."""
    if image.ndim == 2:
        return _to_uint8(image)
    if image.ndim == 3 and image.shape[2] == 1:
        return _to_uint8(image[..., 0])
    if image.ndim == 3 and image.shape[2] in (3, 4):
        # BGR format: [B, G, R] at indices [0, 1, 2]
        r = image[..., 2].astype(np.float64) * 0.299
        g = image[..., 1].astype(np.float64) * 0.587
        b = image[..., 0].astype(np.float64) * 0.114
        return _to_uint8(r + g + b)
    raise ValueError("Expected grayscale, BGR or BGRA image")


def _to_tensor(image: np.ndarray, device: torch.device | None = None) -> torch.Tensor:
    """HW or HWC uint8 array -> (1, C, H, W) float tensor in [0, 255]."""
    arr = torch.from_numpy(np.ascontiguousarray(image).astype(np.float32))
    if arr.ndim == 2:
        arr = arr.unsqueeze(-1)
    arr = arr.permute(2, 0, 1).unsqueeze(0)
    return arr.to(device)


def _to_numpy_image(t: torch.Tensor, squeeze_gray: bool = False) -> np.ndarray:
    if t.ndim == 4:
        t = t[0]
    arr = torch.round(t.clamp(0, 255)).permute(1, 2, 0).detach().cpu().numpy()
    arr = arr.astype(np.uint8)
    if squeeze_gray and arr.shape[2] == 1:
        arr = arr[..., 0]
    return arr


def _resize_torch(image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """Resize image using PyTorch. size is (width, height)."""
    t = _to_tensor(image)
    t_resized = F.interpolate(
        t, size=(size[1], size[0]), mode="bilinear", align_corners=False
    )
    return _to_numpy_image(t_resized, squeeze_gray=image.ndim == 2)
