from .config import EngineConfig, MainConfig
from .src.api import FaceBlit, StylizationResult
from .src.errors import (
    DegenerateInputError,
    FaceStyleError,
    OutOfBoundsError,
    SizeMismatchError,
)
from .src.ops import (
    compute_look_up_cube,
    get_app_guide,
    get_skin_mask,
    gradient_guide,
    gray_hist_matching,
    mediapipe_to_dlib,
    position_guide,
    style_blit,
    warp_mls_similarity,
)
from .src.store import (
    DirectoryStyleStore,
    MemoryStyleStore,
    StyleAsset,
    StyleStore,
    compute_style_asset,
)

__all__ = [
    "EngineConfig",
    "MainConfig",
    "FaceBlit",
    "StylizationResult",
    "FaceStyleError",
    "OutOfBoundsError",
    "SizeMismatchError",
    "DegenerateInputError",
    "compute_look_up_cube",
    "get_app_guide",
    "get_skin_mask",
    "gradient_guide",
    "gray_hist_matching",
    "mediapipe_to_dlib",
    "position_guide",
    "style_blit",
    "warp_mls_similarity",
    "DirectoryStyleStore",
    "MemoryStyleStore",
    "StyleAsset",
    "StyleStore",
    "compute_style_asset",
]
