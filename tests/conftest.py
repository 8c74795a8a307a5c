"""Shared fixtures for facestyle tests."""

import math

import numpy as np
import pytest

from facestyle.config import EngineConfig, LookupConfig
from facestyle.src.guides import get_app_guide, gradient_guide
from facestyle.src.lookup import compute_look_up_cube


def make_face_landmarks(size: int) -> list[tuple[float, float]]:
    """Synthetic 68-point face laid out like the dlib model inside a size x size image."""
    s = float(size)
    cx, cy = 0.5 * s, 0.44 * s
    pts: list[tuple[float, float]] = []

    # 0-16 jaw, left ear -> chin -> right ear
    rx, ry = 0.31 * s, 0.42 * s
    for i in range(17):
        t = math.pi * i / 16
        pts.append((cx - rx * math.cos(t), cy + ry * math.sin(t)))
    # 17-26 brows
    for i in range(5):
        pts.append((0.28 * s + i * 0.0425 * s, 0.36 * s))
    for i in range(5):
        pts.append((0.55 * s + i * 0.0425 * s, 0.36 * s))
    # 27-30 nose bridge, 31-35 nostrils
    for i in range(4):
        pts.append((cx, 0.42 * s + i * 0.06 * s))
    for i in range(5):
        pts.append((0.42 * s + i * 0.04 * s, 0.64 * s))
    # 36-41 and 42-47 eyes
    for ex in (0.37 * s, 0.63 * s):
        for i in range(6):
            t = 2 * math.pi * i / 6
            pts.append((ex - 0.05 * s * math.cos(t), 0.44 * s - 0.02 * s * math.sin(t)))
    # 48-59 outer lips, 60-67 inner lips
    for i in range(12):
        t = 2 * math.pi * i / 12
        pts.append((cx - 0.12 * s * math.cos(t), 0.76 * s - 0.05 * s * math.sin(t)))
    for i in range(8):
        t = 2 * math.pi * i / 8
        pts.append((cx - 0.07 * s * math.cos(t), 0.76 * s - 0.025 * s * math.sin(t)))
    assert len(pts) == 68
    return pts


def make_smooth_image(h: int, w: int, seed: int = 0) -> np.ndarray:
    """Smooth BGR test image with a bit of texture."""
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[:h, :w].astype(np.float64)
    base = np.stack(
        [
            80 + 60 * np.sin(xx / 7.0),
            120 + 50 * np.cos(yy / 5.0),
            100 + 40 * np.sin((xx + yy) / 9.0),
        ],
        axis=-1,
    )
    noise = rng.normal(0, 6, size=base.shape)
    return np.clip(base + noise, 0, 255).astype(np.uint8)


@pytest.fixture
def face_landmarks():
    return make_face_landmarks(64)


@pytest.fixture
def style_image():
    return make_smooth_image(64, 64, seed=1)


@pytest.fixture
def small_engine_config():
    """Engine config that keeps cube construction quick."""
    return EngineConfig(
        lookup=LookupConfig(search_radius=4, num_workers=2, show_progress=False)
    )


@pytest.fixture(scope="session")
def small_style():
    """24x24 style image with its guides and a lookup cube."""
    image = make_smooth_image(24, 24, seed=7)
    pos = gradient_guide(24, 24)
    app = get_app_guide(image)
    cube = compute_look_up_cube(pos, app, search_radius=3, num_workers=2, show_progress=False)
    return {"image": image, "pos": pos, "app": app, "cube": cube}
