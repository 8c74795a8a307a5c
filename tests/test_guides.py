"""Tests for position and appearance guide construction."""

import numpy as np
import pytest

from facestyle.src.errors import SizeMismatchError
from facestyle.src.guides import (
    appearance_levels,
    get_app_guide,
    gradient_guide,
    gray_hist_matching,
    position_guide,
    pyr_down,
    to_luminance,
    upscale_bilinear,
)


class TestGradientGuide:
    """Test cases for the synthetic position gradient."""

    def test_channels_encode_position(self):
        guide = gradient_guide(4, 8)
        assert guide.shape == (8, 4, 3)
        assert guide.dtype == np.uint8
        np.testing.assert_array_equal(guide[0, :, 2], [0, 64, 128, 192])
        np.testing.assert_array_equal(guide[:, 0, 1], [0, 32, 64, 96, 128, 160, 192, 224])
        assert not guide[..., 0].any()

    def test_draw_grid(self):
        guide = gradient_guide(25, 25, draw_grid=True)
        assert (guide[10, :] == 255).all()
        assert (guide[:, 20] == 255).all()
        assert guide[5, 5, 0] == 0


class TestLuminance:
    def test_bgr_weights(self):
        pixel = np.array([[[255, 0, 0], [0, 255, 0], [0, 0, 255]]], dtype=np.uint8)
        np.testing.assert_array_equal(to_luminance(pixel), [[29, 150, 76]])


class TestPyramid:
    """Test cases for pyramid levels, downsampling and upsampling."""

    @pytest.mark.parametrize(
        "width,levels", [(100, 0), (256, 0), (511, 0), (512, 1), (1024, 2), (3000, 3)]
    )
    def test_appearance_levels(self, width, levels):
        assert appearance_levels(width) == levels

    def test_pyr_down_shape(self):
        gray = np.zeros((48, 64), dtype=np.uint8)
        assert pyr_down(gray, 2).shape == (12, 16)

    def test_pyr_down_keeps_flat_image(self):
        gray = np.full((20, 30), 77, dtype=np.uint8)
        np.testing.assert_array_equal(pyr_down(gray, 1), np.full((10, 15), 77))

    @staticmethod
    def _reference_pyr_down_once(img):
        # Direct 5x5 binomial sum with clamped borders at even centres.
        k = [1, 4, 6, 4, 1]
        h, w = img.shape
        out = np.zeros((h // 2, w // 2), dtype=np.int64)
        for oy in range(h // 2):
            for ox in range(w // 2):
                total = 0
                for j in range(5):
                    for i in range(5):
                        sy = min(max(2 * oy + j - 2, 0), h - 1)
                        sx = min(max(2 * ox + i - 2, 0), w - 1)
                        total += k[j] * k[i] * int(img[sy, sx])
                out[oy, ox] = (total + 128) // 256
        return out

    def test_pyr_down_matches_binomial_reference(self):
        rng = np.random.default_rng(7)
        gray = rng.integers(0, 256, size=(37, 53), dtype=np.uint8)
        expected = self._reference_pyr_down_once(self._reference_pyr_down_once(gray))
        result = pyr_down(gray, 2)
        assert result.shape == (9, 13)
        np.testing.assert_array_equal(result, expected)

    def test_upscale_corner_aligned(self):
        small = np.array([[0, 100], [200, 100]], dtype=np.uint8)
        up = upscale_bilinear(small, (3, 3))
        assert up[0, 0] == 0 and up[0, 2] == 100 and up[2, 0] == 200
        assert up[0, 1] == 50
        assert up[1, 1] == 100


class TestAppGuide:
    """Test cases for the appearance guide."""

    def test_flat_image_is_mid_grey(self):
        img = np.full((32, 600, 3), 90, dtype=np.uint8)
        guide = get_app_guide(img, stretch_hist=False)
        assert guide.shape == (32, 600)
        assert (guide == 128).all()

    def test_no_levels_means_no_residual(self, style_image):
        guide = get_app_guide(style_image, stretch_hist=False, levels=0)
        assert (guide == 128).all()

    def test_residual_is_centred(self, style_image):
        guide = get_app_guide(style_image, stretch_hist=False, levels=2)
        assert guide.dtype == np.uint8
        assert abs(float(guide.mean()) - 128) < 10

    def test_residual_values_one_level(self):
        # Rows are [0, 40, 80, 120]; one level down gives [15, 78], which
        # upscales to [15, 36, 57, 78]. Halved residuals truncate toward zero.
        gray = np.tile(np.array([0, 40, 80, 120], dtype=np.uint8), (4, 1))
        guide = get_app_guide(gray, stretch_hist=False, levels=1)
        np.testing.assert_array_equal(guide, np.tile([121, 130, 139, 149], (4, 1)))

    def test_stretch_is_symmetric(self, style_image):
        raw = get_app_guide(style_image, stretch_hist=False, levels=2)
        stretched = get_app_guide(style_image, stretch_hist=True, levels=2)
        margin = min(int(raw.min()), 255 - int(raw.max()))
        assert margin > 0
        assert stretched.min() == 0 or stretched.max() == 255
        # The stretch is monotonic in the raw residual.
        order = np.argsort(raw.ravel(), kind="stable")
        assert (np.diff(stretched.ravel()[order].astype(int)) >= 0).all()


class TestHistogramMatching:
    """Test cases for grayscale histogram matching."""

    def test_self_match_is_identity(self):
        levels = np.array([10, 60, 130, 200, 240], dtype=np.uint8)
        gray = np.tile(levels, 80).reshape(20, 20)
        np.testing.assert_array_equal(gray_hist_matching(gray, gray), gray)

    def test_size_mismatch_raises(self):
        a = np.zeros((4, 4), dtype=np.uint8)
        b = np.zeros((5, 4), dtype=np.uint8)
        with pytest.raises(SizeMismatchError):
            gray_hist_matching(a, b)

    def test_same_count_different_shape_is_allowed(self):
        a = np.array([[0, 0, 255, 255]], dtype=np.uint8)
        b = np.array([[10], [10], [20], [20]], dtype=np.uint8)
        out = gray_hist_matching(a, b)
        np.testing.assert_array_equal(out, [[10, 10, 20, 20]])

    def test_matches_reference_histogram(self):
        src = np.repeat(np.arange(4, dtype=np.uint8), 4).reshape(4, 4)
        ref = np.repeat(np.array([50, 100, 150, 200], dtype=np.uint8), 4).reshape(4, 4)
        out = gray_hist_matching(src, ref)
        np.testing.assert_array_equal(out, ref)


class TestPositionGuide:
    """Test cases for the MLS-warped position guide."""

    def test_identity_landmarks_reproduce_gradient(self, face_landmarks):
        guide = position_guide(face_landmarks, face_landmarks, (64, 64), (64, 64))
        np.testing.assert_array_equal(guide, gradient_guide(64, 64))

    def test_target_size(self, face_landmarks):
        target = [(x * 0.5, y * 0.75) for x, y in face_landmarks]
        guide = position_guide(face_landmarks, target, (64, 64), (48, 32))
        assert guide.shape == (48, 32, 3)

    def test_length_mismatch(self, face_landmarks):
        with pytest.raises(SizeMismatchError):
            position_guide(face_landmarks, face_landmarks[:10], (64, 64), (64, 64))
