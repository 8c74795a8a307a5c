"""Tests for landmark conversion and landmark files."""

import numpy as np
import pytest

from facestyle.src.errors import SizeMismatchError
from facestyle.src.io_utils import read_landmarks_file, write_landmarks_file
from facestyle.src.landmarks import (
    MP2DLIB_CORRESPONDENCE,
    denormalize_landmarks,
    mediapipe_to_dlib,
)


@pytest.fixture
def mesh():
    idx = np.arange(478, dtype=np.float64)
    return np.stack([idx / 1000.0, idx / 500.0, np.full(478, -0.1)], axis=1)


class TestCorrespondenceTable:
    def test_table_is_paired(self):
        assert len(MP2DLIB_CORRESPONDENCE) == 68
        assert all(len(entry) == 2 for entry in MP2DLIB_CORRESPONDENCE)

    def test_known_entries(self):
        assert MP2DLIB_CORRESPONDENCE[0] == (127, 127)
        assert MP2DLIB_CORRESPONDENCE[3] == (132, 58)
        assert MP2DLIB_CORRESPONDENCE[27] == (168, 6)
        assert MP2DLIB_CORRESPONDENCE[67] == (87, 87)

    def test_five_true_pairs(self):
        pairs = [i for i, (a, b) in enumerate(MP2DLIB_CORRESPONDENCE) if a != b]
        assert pairs == [3, 4, 12, 27, 28]
        assert all(0 <= v < 468 for entry in MP2DLIB_CORRESPONDENCE for v in entry)


class TestMediapipeToDlib:
    """Test cases for mesh to 68-point conversion."""

    def test_single_and_paired_entries(self, mesh):
        (face,) = mediapipe_to_dlib([mesh])
        assert face.shape == (68, 3)
        np.testing.assert_allclose(face[0], [0.127, 0.254, -0.1])
        np.testing.assert_allclose(face[3], [0.095, 0.19, -0.1])

    def test_two_dimensional_input_gets_zero_depth(self, mesh):
        (face,) = mediapipe_to_dlib([mesh[:, :2]])
        assert (face[:, 2] == 0).all()

    def test_multiple_faces(self, mesh):
        faces = mediapipe_to_dlib([mesh, mesh[:468]])
        assert len(faces) == 2

    def test_short_mesh_raises(self, mesh):
        with pytest.raises(SizeMismatchError):
            mediapipe_to_dlib([mesh[:100]])


class TestDenormalize:
    def test_rounds_to_pixels(self):
        pts = denormalize_landmarks([(0.5, 0.25), (0.333, 1.0)], 100, 200)
        assert pts == [(50, 50), (33, 200)]


class TestLandmarksFile:
    """Test cases for the plain-text landmark format."""

    def test_round_trip(self, tmp_path):
        pts = [(1, 2), (30, 40), (5, 6)]
        path = write_landmarks_file(tmp_path / "face_landmarks.txt", pts)
        assert path.read_text().splitlines()[0] == "3"
        assert read_landmarks_file(path) == pts

    def test_without_header(self, tmp_path):
        path = tmp_path / "lms.txt"
        path.write_text("10 20\n30.6 40.2\n")
        assert read_landmarks_file(path) == [(10, 20), (31, 40)]

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_landmarks_file(tmp_path / "missing.txt")
