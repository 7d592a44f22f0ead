import sys
import os

# Add project root to sys.path so tests can import from all modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from unittest.mock import MagicMock

# Mock mediapipe so tests never load the real FaceMesh graph
_mp_mock = MagicMock()
sys.modules.setdefault("mediapipe", _mp_mock)
sys.modules.setdefault("mediapipe.solutions", _mp_mock.solutions)
sys.modules.setdefault("mediapipe.solutions.face_mesh", _mp_mock.solutions.face_mesh)

import pytest
from hypothesis import settings

from evaluators.drowsiness_detector import DrowsinessDetector
from models.data_models import EyesVisible

# CI profile: more examples for thorough testing
settings.register_profile("ci", max_examples=200)
# Dev profile: fewer examples for faster iteration
settings.register_profile("dev", max_examples=100)
# Default to dev profile
settings.load_profile("dev")

CLOSED = EyesVisible(left_open=0.2, right_open=0.2)
OPEN = EyesVisible(left_open=0.9, right_open=0.9)


def feed(detector, obs, n, enabled=True):
    """连续输入 n 帧相同的观测，返回全部决策"""
    return [detector.observe(obs, enabled) for _ in range(n)]


@pytest.fixture
def detector():
    return DrowsinessDetector()
