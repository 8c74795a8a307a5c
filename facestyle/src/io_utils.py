import datetime
from pathlib import Path
from typing import Sequence, Tuple, Union

import numpy as np
from PIL import Image

PathLike = Union[str, Path]

__all__ = [
    "PathLike",
    "get_timestamp",
    "log",
    "read_landmarks_file",
    "write_landmarks_file",
    "read_image",
    "read_gray_image",
    "write_image",
]


def get_timestamp():
    return datetime.datetime.now().strftime("%H:%M:%S")


def log(tag: str, message: str) -> None:
    print(f"[{get_timestamp()}] [{tag}] {message}")


def read_landmarks_file(path: PathLike) -> list[Tuple[int, int]]:
    if not Path(path).exists():
        raise FileNotFoundError(f"Landmarks file not found: {path}")
    text = Path(path).read_text().strip().splitlines()
    pts: list[Tuple[int, int]] = []
    start_idx = 1 if text and len(text[0].split()) == 1 else 0
    for line in text[start_idx:]:
        parts = line.strip().split()
        if len(parts) >= 2:
            pts.append((int(round(float(parts[0]))), int(round(float(parts[1])))))
    return pts


def write_landmarks_file(path: PathLike, landmarks: Sequence[Tuple[int, int]]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        f.write(f"{len(landmarks)}\n")
        for x, y in landmarks:
            f.write(f"{int(round(x))} {int(round(y))}\n")
    return path


def read_image(path: PathLike) -> np.ndarray:
    """Read image using PIL and return as BGR numpy array (OpenCV format)."""
    if not Path(path).exists():
        raise FileNotFoundError(f"Failed to read image: {path}")
    img = Image.open(str(path)).convert("RGB")
    arr = np.array(img)
    # Convert RGB to BGR for consistency with OpenCV
    return arr[..., ::-1].copy()


def read_gray_image(path: PathLike) -> np.ndarray:
    if not Path(path).exists():
        raise FileNotFoundError(f"Failed to read image: {path}")
    return np.array(Image.open(str(path)).convert("L"))


def write_image(path: PathLike, image: np.ndarray) -> Path:
    """Write a BGR (or grayscale) numpy array as image using PIL."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if image.ndim == 2:
        Image.fromarray(image).save(str(path))
    else:
        # Convert BGR to RGB
        rgb = np.ascontiguousarray(image[..., 2::-1])
        Image.fromarray(rgb).save(str(path))
    return path
