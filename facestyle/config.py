from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .consts import (
    BLEND_KERNEL_SIZE,
    BLIT_THRESHOLD,
    GRID_SIZE,
    LAMBDA_APP,
    LAMBDA_POS,
    NUM_WORKERS,
    SEARCH_RADIUS,
)


class ProjectConfig(BaseModel):
    name: str = "DefaultProject"
    # --- REQUIRED PATHS ---
    style_name: str
    target_path: str
    target_landmarks_path: str
    output_dir: str
    # --- STYLE AUTHORING (only needed when the style is not in the store yet) ---
    style_path: Optional[str] = None
    style_landmarks_path: Optional[str] = None
    # --- CACHING ---
    store_dir: str = "styles"
    force_precomputation: bool = False


class WarpConfig(BaseModel):
    grid_size: int = Field(GRID_SIZE, ge=1)
    trans_ratio: float = Field(1.0, ge=0.0, le=1.0)


class GuideConfig(BaseModel):
    stretch_hist: bool = True
    draw_grid: bool = False
    # None picks floor(log2(width / 256)) pyramid levels.
    levels: Optional[int] = Field(None, ge=0)


class LookupConfig(BaseModel):
    lambda_pos: int = Field(LAMBDA_POS, ge=0)
    lambda_app: int = Field(LAMBDA_APP, ge=0)
    search_radius: int = Field(SEARCH_RADIUS, ge=1)
    num_workers: int = Field(NUM_WORKERS, ge=1)
    device: str = "cpu"
    show_progress: bool = True


class BlitConfig(BaseModel):
    threshold: int = BLIT_THRESHOLD
    lambda_pos: int = Field(LAMBDA_POS, ge=0)
    lambda_app: int = Field(LAMBDA_APP, ge=0)
    dfs_mode: str = "numba"  # 'numba' or 'python'

    @field_validator("dfs_mode")
    @classmethod
    def dfs_mode_must_be_valid(cls, v):
        if v not in ["numba", "python"]:
            raise ValueError("dfs_mode must be 'numba' or 'python'")
        return v


class PostConfig(BaseModel):
    skin_mask_blend: bool = False
    blend_kernel: int = Field(BLEND_KERNEL_SIZE, ge=0)


class EngineConfig(BaseModel):
    warp: WarpConfig = Field(default_factory=WarpConfig)
    guides: GuideConfig = Field(default_factory=GuideConfig)
    lookup: LookupConfig = Field(default_factory=LookupConfig)
    blit: BlitConfig = Field(default_factory=BlitConfig)
    post: PostConfig = Field(default_factory=PostConfig)
    device: str = "cpu"


class MainConfig(BaseModel):
    project: ProjectConfig
    engine: EngineConfig = Field(default_factory=EngineConfig)
