"""
Core facestyle operations split into smaller, focused modules.
Functions are re-exported here.
"""

from .errors import (
    DegenerateInputError,
    FaceStyleError,
    OutOfBoundsError,
    SizeMismatchError,
)
from .geometry import (
    Topology,
    average_markers,
    average_point,
    clamp_landmarks,
    clamp_point,
    euclidean_distance,
    get_head_area_rect,
    is_point_inside,
    point_on_circle,
    resample_contour,
    rotate_180,
    scale_points,
    translate_points,
)
from .guides import (
    appearance_levels,
    get_app_guide,
    gradient_guide,
    gray_hist_matching,
    position_guide,
    pyr_down,
    to_luminance,
    upscale_bilinear,
)
from .image_utils import (
    _ensure_grayscale,
    _resize_torch,
    _to_numpy_image,
    _to_tensor,
    _to_uint8,
)
from .io_utils import (
    read_gray_image,
    read_image,
    read_landmarks_file,
    write_image,
    write_landmarks_file,
)
from .landmarks import MP2DLIB_CORRESPONDENCE, denormalize_landmarks, mediapipe_to_dlib
from .lookup import (
    compute_look_up_cube,
    load_look_up_cube,
    look_up_cell,
    save_look_up_cube,
    split_slabs,
)
from .masking import alpha_blend, get_skin_mask, rgb_to_yuv, sample_color
from .stylization import (
    compute_guided_error,
    compute_style_seed_point,
    seed_grow,
    style_blit,
)
from .warping import _calc_mls_delta, dense_displacement, warp_mls_similarity

__all__ = [
    "FaceStyleError",
    "OutOfBoundsError",
    "SizeMismatchError",
    "DegenerateInputError",
    "_to_uint8",
    "_ensure_grayscale",
    "_to_tensor",
    "_to_numpy_image",
    "_resize_torch",
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
    "_calc_mls_delta",
    "dense_displacement",
    "warp_mls_similarity",
    "to_luminance",
    "gradient_guide",
    "appearance_levels",
    "pyr_down",
    "upscale_bilinear",
    "get_app_guide",
    "gray_hist_matching",
    "position_guide",
    "look_up_cell",
    "split_slabs",
    "compute_look_up_cube",
    "save_look_up_cube",
    "load_look_up_cube",
    "compute_guided_error",
    "compute_style_seed_point",
    "seed_grow",
    "style_blit",
    "rgb_to_yuv",
    "sample_color",
    "get_skin_mask",
    "alpha_blend",
    "MP2DLIB_CORRESPONDENCE",
    "mediapipe_to_dlib",
    "denormalize_landmarks",
    "read_landmarks_file",
    "write_landmarks_file",
    "read_image",
    "read_gray_image",
    "write_image",
]
