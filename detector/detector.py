import logging
import mimetypes
import os

import numpy as np
from django.conf import settings

from .analyzers import PixelSignalExtractor, load_raster
from .exceptions import UnreadableMediaError
from .parsers import get_parser
from .remote import GeminiClient
from .results import ScoreResult, fallback_result
from .subscores import SubScoreSynthesizer, HEURISTIC_PROFILE, MODEL_PROFILE

logger = logging.getLogger(__name__)

FAKE_THRESHOLD = 45


# ================================================================
# Heuristic rule table: (points, reason, condition)
# ================================================================
RULES = [
    (35, 'perfect mathematical gradients',
     lambda s: s.perfect_gradient_ratio > 0.02),
    (30, 'unnatural color-ratio consistency',
     lambda s: s.color_consistency_ratio > 0.15),
    (25, 'excessive symmetry',
     lambda s: s.symmetry_ratio > 0.4),
    (20, 'suspicious frequency pattern',
     lambda s: s.frequency_anomaly_ratio > 0.1),
    (25, 'unnatural smoothness',
     lambda s: s.smoothness_ratio > 0.5 and s.edge_ratio < 0.15),
    (30, 'high variance with perfect elements',
     lambda s: (s.avg_variance > 50 and s.perfect_gradient_ratio > 0.01
                and s.color_consistency_ratio > 0.1)),
    (25, 'unnaturally low variance',
     lambda s: s.avg_variance < 15),
    (20, 'digital artifacts',
     lambda s: s.artifact_ratio > 0.05),
    (15, 'suspicious compression',
     lambda s: s.compression_ratio > 0.05 and s.avg_variance > 30),
    (15, 'unnatural color uniformity',
     lambda s: s.avg_color_variance < 8),
    (10, 'lacking texture detail',
     lambda s: s.edge_ratio < 0.08),
    (20, 'stylized-imagery bonus',
     lambda s: (s.avg_variance > 40 and s.symmetry_ratio > 0.3
                and s.perfect_gradient_ratio > 0.015)),
]


def is_fake_score(fake_score):
    return fake_score >= FAKE_THRESHOLD


def confidence_for(fake_score, is_deepfake):
    if is_deepfake:
        confidence = min(95.0, 55 + 0.8 * fake_score)
    else:
        confidence = max(60.0, 100 - 1.2 * fake_score)
    return float(min(100.0, max(0.0, confidence)))


class HeuristicScorer:
    def __init__(self, synthesizer=None, rules=RULES):
        self.synthesizer = synthesizer or SubScoreSynthesizer(HEURISTIC_PROFILE)
        self.rules = rules

    def evaluate(self, signals):
        """Return (fake_score, reasons) for a SignalVector."""
        fake_score = 0
        reasons = []
        for points, reason, condition in self.rules:
            if condition(signals):
                fake_score += points
                reasons.append(reason)
        return fake_score, reasons

    def score(self, signals):
        fake_score, reasons = self.evaluate(signals)
        is_deepfake = is_fake_score(fake_score)
        confidence = confidence_for(fake_score, is_deepfake)
        return ScoreResult(
            is_deepfake=is_deepfake,
            confidence=confidence,
            sub_scores=self.synthesizer.synthesize(confidence, is_deepfake),
            explanation=self._explain(reasons, confidence),
            fake_score=float(fake_score),
            reasons=reasons,
            engine='heuristic',
            signals=signals.as_dict(),
        )

    def _explain(self, reasons, confidence):
        if reasons:
            return (f"Pixel analysis flagged: {', '.join(reasons)}. "
                    f"Confidence: {round(confidence)}%.")
        return (f"No manipulation indicators found in pixel analysis. "
                f"Confidence: {round(confidence)}%.")


# ================================================================
# Main Detector
# ================================================================
IMAGE_EXTS = ('.jpg', '.jpeg', '.png', '.bmp', '.tiff', '.tif', '.webp', '.gif')
VIDEO_EXTS = ('.mp4', '.avi', '.mov', '.mkv', '.webm', '.flv', '.wmv', '.m4v')
AUDIO_EXTS = ('.mp3', '.wav', '.ogg', '.flac', '.m4a', '.aac')


def detect_media_kind(mime_type, file_name=''):
    """Classify an upload as image, video or audio (mime type first, then extension)."""
    major = (mime_type or '').split('/')[0].lower()
    if major in ('image', 'video', 'audio'):
        return major
    ext = os.path.splitext(file_name or '')[1].lower()
    if ext in IMAGE_EXTS:
        return 'image'
    if ext in VIDEO_EXTS:
        return 'video'
    if ext in AUDIO_EXTS:
        return 'audio'
    return 'unknown'


def guess_mime_type(mime_type, file_name=''):
    if mime_type and mime_type != 'application/octet-stream':
        return mime_type
    guessed, _ = mimetypes.guess_type(file_name or '')
    return guessed or 'application/octet-stream'


class DeepfakeDetector:
    """Routes an upload to the pixel heuristics or the remote model."""

    def __init__(self, client=None, response_format=None, image_engine=None,
                 max_dim=None, rng=None):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.client = client or GeminiClient()
        self.parser = get_parser(response_format or settings.MODEL_RESPONSE_FORMAT)
        self.image_engine = image_engine or settings.ANALYSIS_IMAGE_ENGINE
        self.max_dim = max_dim if max_dim is not None else settings.ANALYSIS_MAX_DIM
        self.extractor = PixelSignalExtractor(rng=self.rng)
        self.scorer = HeuristicScorer(SubScoreSynthesizer(HEURISTIC_PROFILE, rng=self.rng))
        self.model_synthesizer = SubScoreSynthesizer(MODEL_PROFILE, rng=self.rng)

    def uses_heuristics(self, media_kind):
        return media_kind == 'image' and self.image_engine == 'heuristic'

    def analyze(self, data, mime_type, file_name=''):
        kind = detect_media_kind(mime_type, file_name)
        if self.uses_heuristics(kind):
            return self.analyze_image(data)
        return self.analyze_with_model(data, guess_mime_type(mime_type, file_name), kind)

    def analyze_image(self, data):
        """Score an image locally. Unreadable input yields the neutral fallback."""
        try:
            raster = load_raster(data, self.max_dim)
            signals = self.extractor.analyze(raster)
        except UnreadableMediaError as e:
            logger.warning("Image unreadable, using neutral result: %s", e)
            return fallback_result()
        except Exception:
            logger.exception("Pixel extraction failed, using neutral result")
            return fallback_result()
        result = self.scorer.score(signals)
        logger.info("Heuristic score %s -> deepfake=%s confidence=%.1f",
                    result.fake_score, result.is_deepfake, result.confidence)
        return result

    def analyze_with_model(self, data, mime_type, media_kind):
        """Ask the remote model. RemoteProviderError propagates to the caller."""
        prompt = self.parser.build_prompt(media_kind if media_kind != 'unknown' else 'file')
        text = self.client.generate(prompt, mime_type, data)
        result = self.parser.to_result(text, self.model_synthesizer)
        logger.info("Model verdict deepfake=%s confidence=%.1f (%s)",
                    result.is_deepfake, result.confidence, result.engine)
        return result
