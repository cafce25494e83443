from dataclasses import dataclass

import numpy as np

CATEGORIES = ('spatial', 'temporal', 'audio', 'metadata')


@dataclass(frozen=True)
class SubScoreProfile:
    name: str
    jitter: float
    low: float
    high: float


# The two engines clamp differently
HEURISTIC_PROFILE = SubScoreProfile('heuristic', jitter=6.0, low=20.0, high=88.0)
MODEL_PROFILE = SubScoreProfile('model', jitter=7.5, low=15.0, high=95.0)


class SubScoreSynthesizer:
    """Spreads one confidence value over the four display categories."""

    def __init__(self, profile, rng=None):
        self.profile = profile
        self.rng = rng if rng is not None else np.random.default_rng()

    def synthesize(self, confidence, is_deepfake):
        p = self.profile
        base = 100.0 - confidence if is_deepfake else confidence
        status = 'suspicious' if is_deepfake else 'authentic'
        out = {}
        for category in CATEGORIES:
            jittered = base + self.rng.uniform(-p.jitter, p.jitter)
            out[category] = {
                'score': float(min(p.high, max(p.low, jittered))),
                'status': status,
            }
        return out


def neutral_sub_scores():
    return {c: {'score': 50.0, 'status': 'unknown'} for c in CATEGORIES}
