"""Tests for the region-growth stylizer."""

from collections import deque

import numpy as np
import pytest

from facestyle.src.errors import OutOfBoundsError, SizeMismatchError
from facestyle.src.guides import get_app_guide, gradient_guide, position_guide
from facestyle.src.stylization import (
    compute_guided_error,
    compute_style_seed_point,
    style_blit,
)

from .conftest import make_face_landmarks, make_smooth_image


def assert_chunks_connected(covered: np.ndarray) -> None:
    """Every chunk id labels one 4-connected set of pixels."""
    h, w = covered.shape
    for chunk in np.unique(covered):
        if chunk == 0:
            continue
        pixels = set(zip(*np.nonzero(covered == chunk)))
        start = next(iter(pixels))
        seen = {start}
        q = deque([start])
        while q:
            y, x = q.popleft()
            for ny, nx in ((y, x - 1), (y, x + 1), (y - 1, x), (y + 1, x)):
                if (ny, nx) in pixels and (ny, nx) not in seen:
                    seen.add((ny, nx))
                    q.append((ny, nx))
        assert seen == pixels, f"chunk {chunk} is not 4-connected"


@pytest.fixture
def gray_gradient_style():
    """4x4 style image, each row [0, 85, 170, 255]."""
    return np.tile(np.array([0, 85, 170, 255], dtype=np.uint8), (4, 1))


class TestGuidedError:
    def test_error_terms(self):
        style_pos = np.zeros((2, 2, 3), dtype=np.uint8)
        target_pos = np.zeros((2, 2, 3), dtype=np.uint8)
        style_pos[0, 0] = (0, 10, 20)
        target_pos[1, 1] = (0, 13, 16)
        style_app = np.full((2, 2), 100, dtype=np.uint8)
        target_app = np.full((2, 2), 90, dtype=np.uint8)

        err = compute_guided_error(
            style_pos, target_pos, style_app, target_app, (1, 1), (0, 0), 10, 2
        )
        assert err == 10 * (3 + 4) + 2 * 10

        no_app = compute_guided_error(style_pos, target_pos, None, None, (1, 1), (0, 0), 10, 2)
        assert no_app == 70


class TestSeedPoint:
    """Test cases for choosing the style seed of a chunk."""

    def test_direct_lookup_without_appearance(self):
        target_pos = gradient_guide(8, 8)
        assert compute_style_seed_point(target_pos, None, None, 5, 2, (16, 16), 0) == (10, 4)

    def test_cube_lookup(self):
        target_pos = np.zeros((1, 1, 3), dtype=np.uint8)
        target_app = np.zeros((1, 1), dtype=np.uint8)
        cube = np.zeros((1, 1, 1, 2), dtype=np.uint16)
        cube[0, 0, 0] = (3, 1)
        assert compute_style_seed_point(target_pos, target_app, cube, 0, 0, (4, 4), 2) == (1, 3)

    def test_seed_outside_style_raises(self):
        target_pos = np.zeros((1, 1, 3), dtype=np.uint8)
        target_app = np.zeros((1, 1), dtype=np.uint8)
        cube = np.zeros((1, 1, 1, 2), dtype=np.uint16)
        cube[0, 0, 0] = (100, 100)
        with pytest.raises(OutOfBoundsError):
            compute_style_seed_point(target_pos, target_app, cube, 0, 0, (4, 4), 2)


class TestStyleBlit:
    """Test cases for style_blit."""

    @pytest.mark.parametrize("dfs_mode", ["python", "numba"])
    def test_identity_scenario_reproduces_style(self, gray_gradient_style, dfs_mode):
        """Identical position guides with lambda_app=0 copy the style verbatim."""
        pos = gradient_guide(4, 4)
        result, covered = style_blit(
            pos,
            pos.copy(),
            None,
            None,
            None,
            gray_gradient_style,
            stylization_rect=(0, 0, 4, 4),
            threshold=255,
            lambda_pos=10,
            lambda_app=0,
            dfs_mode=dfs_mode,
        )
        np.testing.assert_array_equal(result, gray_gradient_style)
        assert (covered > 0).all()

    def test_generous_threshold_gives_single_chunk(self, gray_gradient_style):
        pos = gradient_guide(4, 4)
        result, covered = style_blit(
            pos, pos, None, None, None, gray_gradient_style, threshold=10_000, lambda_app=0
        )
        np.testing.assert_array_equal(result, gray_gradient_style)
        assert (covered == 1).all()

    @pytest.mark.parametrize("dfs_mode", ["python", "numba"])
    def test_coverage_is_complete_and_connected(self, small_style, dfs_mode):
        style = small_style
        src = make_face_landmarks(24)
        dst = [(x + 1.5 * np.sin(y / 3.0), y + 1.0) for x, y in src]
        target_pos = position_guide(src, dst, (24, 24), (24, 24))
        target_app = get_app_guide(np.roll(style["image"], 2, axis=1), stretch_hist=False)

        rect = (2, 3, 18, 17)
        result, covered = style_blit(
            style["pos"],
            target_pos,
            style["app"],
            target_app,
            style["cube"],
            style["image"],
            stylization_rect=rect,
            threshold=60,
            dfs_mode=dfs_mode,
        )
        x, y, w, h = rect
        region = covered[y : y + h, x : x + w]
        assert (region > 0).all()
        assert result.shape == style["image"].shape
        assert_chunks_connected(covered)

    def test_growth_may_leave_the_rect(self):
        pos = gradient_guide(8, 8)
        image = make_smooth_image(8, 8, seed=3)
        result, covered = style_blit(
            pos, pos, None, None, None, image, stylization_rect=(2, 2, 2, 2), threshold=1000
        )
        # Seeds come from the rect only, but one growth covers the whole image.
        assert (covered == 1).all()
        np.testing.assert_array_equal(result, image)

    def test_python_and_numba_agree(self, small_style):
        style = small_style
        rng = np.random.default_rng(5)
        target_pos = gradient_guide(20, 18)
        target_pos = np.clip(
            target_pos.astype(int) + rng.integers(-6, 7, size=target_pos.shape), 0, 255
        ).astype(np.uint8)
        target_app = rng.integers(100, 160, size=(18, 20), dtype=np.uint8)

        args = (
            style["pos"],
            target_pos,
            style["app"],
            target_app,
            style["cube"],
            style["image"],
        )
        res_py, cov_py = style_blit(*args, threshold=120, dfs_mode="python")
        res_nb, cov_nb = style_blit(*args, threshold=120, dfs_mode="numba")
        np.testing.assert_array_equal(res_py, res_nb)
        np.testing.assert_array_equal(cov_py, cov_nb)
        assert res_py.shape == (18, 20, 3)
        assert (cov_py > 0).all()

    def test_every_chunk_copies_style_pixels(self, small_style):
        style = small_style
        pos = style["pos"]
        result, covered = style_blit(
            pos, pos, None, None, None, style["image"], threshold=30, lambda_app=0
        )
        # Identical guides map every target pixel onto the same style pixel.
        np.testing.assert_array_equal(result, style["image"])

    def test_rect_outside_target_raises(self, gray_gradient_style):
        pos = gradient_guide(4, 4)
        with pytest.raises(OutOfBoundsError):
            style_blit(pos, pos, None, None, None, gray_gradient_style, stylization_rect=(2, 2, 4, 4))

    def test_style_guide_mismatch(self, gray_gradient_style):
        with pytest.raises(SizeMismatchError):
            style_blit(
                gradient_guide(5, 4), gradient_guide(4, 4), None, None, None, gray_gradient_style
            )

    def test_unknown_mode(self, gray_gradient_style):
        pos = gradient_guide(4, 4)
        with pytest.raises(ValueError):
            style_blit(pos, pos, None, None, None, gray_gradient_style, dfs_mode="gpu")
