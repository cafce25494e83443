from dataclasses import dataclass, field

from .subscores import neutral_sub_scores


@dataclass
class ScoreResult:
    is_deepfake: bool
    confidence: float
    sub_scores: dict
    explanation: str
    fake_score: float = 0.0
    reasons: list = field(default_factory=list)
    engine: str = 'heuristic'
    signals: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            'isDeepfake': bool(self.is_deepfake),
            'confidence': float(self.confidence),
            'fakeScore': float(self.fake_score),
            'analysis': self.sub_scores,
            'explanation': self.explanation,
            'reasons': list(self.reasons),
            'engine': self.engine,
            'signals': self.signals,
        }


def fallback_result(explanation='analysis failed'):
    """Neutral result used when an image cannot be read."""
    return ScoreResult(
        is_deepfake=False,
        confidence=50.0,
        sub_scores=neutral_sub_scores(),
        explanation=explanation,
        engine='fallback',
    )
