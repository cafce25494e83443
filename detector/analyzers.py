import io
import logging
from dataclasses import dataclass, asdict

import cv2
import numpy as np
from PIL import Image

from .exceptions import UnreadableMediaError

logger = logging.getLogger(__name__)

SYMMETRY_MAX_SAMPLES = 1000
SYMMETRY_MATCH_DISTANCE = 15.0


@dataclass(frozen=True)
class SignalVector:
    """Per-pixel statistics of one decoded image.

    Every field except the two variance averages is a ratio in [0, 1].
    """
    avg_variance: float = 0.0
    smoothness_ratio: float = 0.0
    edge_ratio: float = 0.0
    perfect_gradient_ratio: float = 0.0
    color_consistency_ratio: float = 0.0
    avg_color_variance: float = 0.0
    artifact_ratio: float = 0.0
    frequency_anomaly_ratio: float = 0.0
    compression_ratio: float = 0.0
    symmetry_ratio: float = 0.0

    def as_dict(self):
        return asdict(self)


def load_raster(data, max_dim=768):
    """Decode image bytes into an RGBA uint8 array of shape (h, w, 4).

    PIL first, cv2.imdecode as a fallback for formats PIL cannot identify.
    Images over PIL's pixel limit are rejected outright. Large images are
    downscaled so the longest side is at most ``max_dim``.
    """
    try:
        pil_img = Image.open(io.BytesIO(data))
        if getattr(pil_img, 'n_frames', 1) > 1:
            pil_img.seek(0)
        raster = np.array(pil_img.convert('RGBA'))
        pil_img.close()
    except Image.DecompressionBombError as e:
        raise UnreadableMediaError(f'Image too large to decode: {e}') from e
    except (OSError, ValueError) as e:
        logger.debug("PIL decode failed (%s), trying cv2.imdecode", e)
        raster = _cv2_decode(data)

    if raster.ndim != 3 or raster.shape[0] == 0 or raster.shape[1] == 0:
        raise UnreadableMediaError('Decoded image is empty')

    h, w = raster.shape[:2]
    if max_dim and max(h, w) > max_dim:
        scale = max_dim / max(h, w)
        raster = cv2.resize(
            raster, (max(1, int(w * scale)), max(1, int(h * scale))),
            interpolation=cv2.INTER_LANCZOS4)
    return raster


def _cv2_decode(data):
    buf = np.frombuffer(data, dtype=np.uint8)
    frame = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED) if buf.size else None
    if frame is None:
        raise UnreadableMediaError('Cannot decode image data')
    if frame.ndim == 2:
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2RGBA)
    if frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA)


class PixelSignalExtractor:
    """Derives a SignalVector from an RGBA raster.

    Everything is a deterministic function of the pixels except the symmetry
    check, which samples mirrored point pairs using ``rng``.
    """

    def __init__(self, rng=None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def analyze(self, raster):
        raster = np.asarray(raster)
        h, w = raster.shape[:2]
        rgb = raster[..., :3].astype(np.int32)
        px = rgb.reshape(-1, 3)
        n = px.shape[0]
        norm = float(max(n, 1))

        # Neighbour deltas in buffer order
        delta = np.abs(px[1:] - px[:-1])
        total_variance = float(delta.sum())
        smooth = int(np.count_nonzero(np.all(delta < 3, axis=1)))
        edges = int(np.count_nonzero(np.any(delta > 25, axis=1)))
        dr, dg, db = delta[:, 0], delta[:, 1], delta[:, 2]
        perfect = int(np.count_nonzero(
            (dr == dg) & (dg == db) & (dr > 0) & (dr < 5)))
        consistent = self._ratio_consistency(px[1:])

        r, g, b = px[:, 0], px[:, 1], px[:, 2]
        rg, gb, rb = np.abs(r - g), np.abs(g - b), np.abs(r - b)
        color_variance = float((rg + gb + rb).sum())
        achromatic = (r == g) & (g == b)
        artifacts = int(np.count_nonzero(
            achromatic & ((r % 8 == 0) | (r % 5 == 0))))
        frequency = int(np.count_nonzero(
            (r > 200) & (g > 200) & (b > 200) & (rg < 5) & (gb < 5)))
        compression = int(np.count_nonzero(
            ((r % 16 == 0) | (g % 16 == 0) | (b % 16 == 0)) & (r + g + b > 400)))

        return SignalVector(
            avg_variance=total_variance / norm,
            smoothness_ratio=smooth / norm,
            edge_ratio=edges / norm,
            perfect_gradient_ratio=perfect / norm,
            color_consistency_ratio=consistent / norm,
            avg_color_variance=color_variance / norm,
            artifact_ratio=artifacts / norm,
            frequency_anomaly_ratio=frequency / norm,
            compression_ratio=compression / norm,
            symmetry_ratio=self._symmetry(rgb, h, w),
        )

    @staticmethod
    def _ratio_consistency(px):
        """Count pixels whose R/G and G/B ratios sit within 0.1 of an integer."""
        r, g, b = (px[:, i].astype(np.float64) for i in range(3))
        valid = (g > 0) & (b > 0)
        rg = np.divide(r, g, out=np.zeros_like(r), where=valid)
        gb = np.divide(g, b, out=np.zeros_like(g), where=valid)
        near = (np.abs(rg - np.round(rg)) < 0.1) & (np.abs(gb - np.round(gb)) < 0.1)
        return int(np.count_nonzero(valid & near))

    def _symmetry(self, rgb, h, w):
        samples = min(SYMMETRY_MAX_SAMPLES, (h * w) // 100)
        if samples <= 0:
            return 0.0
        ys = self.rng.integers(0, h, size=samples)
        xs = self.rng.integers(0, max(1, w // 2), size=samples)
        left = rgb[ys, xs].astype(np.float64)
        right = rgb[ys, w - 1 - xs].astype(np.float64)
        dist = np.sqrt(np.sum((left - right) ** 2, axis=1))
        return float(np.count_nonzero(dist < SYMMETRY_MATCH_DISTANCE)) / samples
