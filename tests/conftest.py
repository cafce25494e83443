"""
Pytest fixtures for detector tests. Jobs run inline and the remote model is mocked.
"""

import io
from unittest.mock import MagicMock

import numpy as np
import pytest
from PIL import Image


def make_png(rgb):
    """Encode an (h, w, 3) uint8 array as PNG bytes."""
    buf = io.BytesIO()
    Image.fromarray(np.asarray(rgb, dtype=np.uint8), 'RGB').save(buf, format='PNG')
    return buf.getvalue()


def to_rgba(rgb):
    rgb = np.asarray(rgb, dtype=np.uint8)
    alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([rgb, alpha], axis=2)


@pytest.fixture(autouse=True)
def analysis_settings(settings):
    settings.ANALYSIS_RUN_INLINE = True
    settings.ANALYSIS_IMAGE_ENGINE = 'heuristic'
    settings.MODEL_RESPONSE_FORMAT = 'verdict'
    settings.GEMINI_API_KEY = 'test-key'
    settings.ANALYSIS_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
    return settings


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def noise_rgb():
    return np.random.default_rng(7).integers(0, 256, size=(100, 100, 3), dtype=np.uint8)


@pytest.fixture
def noise_png(noise_rgb):
    return make_png(noise_rgb)


@pytest.fixture
def fake_client():
    """Stand-in for GeminiClient; set ``fake_client.generate.return_value`` per test."""
    client = MagicMock()
    client.generate.return_value = 'CONFIDENCE_SCORE: 85\nNatural lighting.\nFINAL_VERDICT: AUTHENTIC'
    return client
