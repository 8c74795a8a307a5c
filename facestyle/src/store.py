import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

import numpy as np
import torch

from ..config import EngineConfig
from ..consts import CUBE_SIZE, LUT_SUFFIX
from .errors import SizeMismatchError
from .guides import get_app_guide, gradient_guide
from .io_utils import (
    PathLike,
    log,
    read_gray_image,
    read_image,
    read_landmarks_file,
    write_image,
    write_landmarks_file,
)
from .lookup import compute_look_up_cube, load_look_up_cube, save_look_up_cube

__all__ = [
    "StyleAsset",
    "StyleStore",
    "MemoryStyleStore",
    "DirectoryStyleStore",
    "compute_style_asset",
]


def _read_only(arr: np.ndarray) -> np.ndarray:
    view = np.asarray(arr).view()
    view.setflags(write=False)
    return view


@dataclass(frozen=True, eq=False)
class StyleAsset:
    """Everything a style provides to the stylizer. Immutable once built."""

    name: str
    image: np.ndarray
    pos_guide: np.ndarray
    app_guide: np.ndarray
    landmarks: Tuple[Tuple[int, int], ...]
    look_up_cube: np.ndarray

    def __post_init__(self):
        h, w = self.image.shape[:2]
        if self.pos_guide.shape[:2] != (h, w):
            raise SizeMismatchError(
                f"Position guide {self.pos_guide.shape[:2]} does not match style image {(h, w)}"
            )
        if self.app_guide.shape[:2] != (h, w):
            raise SizeMismatchError(
                f"Appearance guide {self.app_guide.shape[:2]} does not match style image {(h, w)}"
            )
        if self.look_up_cube.shape != (CUBE_SIZE, CUBE_SIZE, CUBE_SIZE, 2):
            raise SizeMismatchError(f"Unexpected lookup cube shape {self.look_up_cube.shape}")

        object.__setattr__(self, "image", _read_only(self.image))
        object.__setattr__(self, "pos_guide", _read_only(self.pos_guide))
        object.__setattr__(self, "app_guide", _read_only(self.app_guide))
        object.__setattr__(self, "look_up_cube", _read_only(self.look_up_cube))
        object.__setattr__(
            self, "landmarks", tuple((int(x), int(y)) for x, y in self.landmarks)
        )

    @property
    def size(self) -> Tuple[int, int]:
        """(height, width) of the style image."""
        return self.image.shape[:2]


class StyleStore(ABC):
    """Persistence boundary for precomputed style assets."""

    @abstractmethod
    def load(self, name: str) -> Optional[StyleAsset]:
        """Return the stored asset, or None when `name` is unknown."""

    @abstractmethod
    def save(self, name: str, asset: StyleAsset) -> None: ...

    @abstractmethod
    def __contains__(self, name: str) -> bool: ...


class MemoryStyleStore(StyleStore):
    def __init__(self):
        self._assets: dict[str, StyleAsset] = {}

    def load(self, name: str) -> Optional[StyleAsset]:
        return self._assets.get(name)

    def save(self, name: str, asset: StyleAsset) -> None:
        self._assets[name] = asset

    def __contains__(self, name: str) -> bool:
        return name in self._assets


class DirectoryStyleStore(StyleStore):
    """
    One sub-directory per style under `root`:

        <root>/<name>/<name>.png               style image
        <root>/<name>/<name>_style_pos.png     position (gradient) guide
        <root>/<name>/<name>_style_app.png     appearance guide
        <root>/<name>/<name>_landmarks.txt     68 landmarks
        <root>/<name>/<name>_lut.bytes         lookup cube, raw little-endian uint16
    """

    def __init__(self, root: PathLike):
        self.root = Path(root)

    def paths(self, name: str) -> dict[str, Path]:
        style_dir = self.root / name
        return {
            "image": style_dir / f"{name}.png",
            "pos": style_dir / f"{name}_style_pos.png",
            "app": style_dir / f"{name}_style_app.png",
            "landmarks": style_dir / f"{name}_landmarks.txt",
            "lut": style_dir / f"{name}{LUT_SUFFIX}",
        }

    def __contains__(self, name: str) -> bool:
        return all(
            p.exists() and p.stat().st_size > 0 for p in self.paths(name).values()
        )

    def load(self, name: str) -> Optional[StyleAsset]:
        if name not in self:
            return None
        paths = self.paths(name)
        return StyleAsset(
            name=name,
            image=read_image(paths["image"]),
            pos_guide=read_image(paths["pos"]),
            app_guide=read_gray_image(paths["app"]),
            landmarks=read_landmarks_file(paths["landmarks"]),
            look_up_cube=load_look_up_cube(paths["lut"]),
        )

    def save(self, name: str, asset: StyleAsset) -> None:
        paths = self.paths(name)
        write_image(paths["image"], np.asarray(asset.image))
        write_image(paths["pos"], np.asarray(asset.pos_guide))
        write_image(paths["app"], np.asarray(asset.app_guide))
        write_landmarks_file(paths["landmarks"], asset.landmarks)
        save_look_up_cube(asset.look_up_cube, paths["lut"])
        log("Store", f"Saved style '{name}' to {paths['image'].parent}")


def compute_style_asset(
    name: str,
    image: np.ndarray,
    landmarks: Sequence[Tuple[int, int]],
    config: EngineConfig | None = None,
) -> StyleAsset:
    """Offline authoring step: build the guides and the lookup cube of a style."""
    config = config or EngineConfig()
    device = torch.device(config.lookup.device)
    h, w = image.shape[:2]

    log("Style", f"Computing guides for '{name}' ({w}x{h})...")
    pos = gradient_guide(w, h, draw_grid=config.guides.draw_grid)
    app = get_app_guide(
        image,
        stretch_hist=config.guides.stretch_hist,
        levels=config.guides.levels,
        device=device,
    )

    log("Style", f"Computing lookup cube with {config.lookup.num_workers} workers...")
    start_time = time.time()
    cube = compute_look_up_cube(
        pos,
        app,
        lambda_pos=config.lookup.lambda_pos,
        lambda_app=config.lookup.lambda_app,
        search_radius=config.lookup.search_radius,
        num_workers=config.lookup.num_workers,
        device=device,
        show_progress=config.lookup.show_progress,
    )
    log("Style", f"Lookup cube ready in {time.time() - start_time:.3f}s")

    return StyleAsset(
        name=name,
        image=image,
        pos_guide=pos,
        app_guide=app,
        landmarks=landmarks,
        look_up_cube=cube,
    )
