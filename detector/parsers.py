"""
Turns the remote model's free-text answer into a bounded verdict.

Two answer shapes exist, one per prompt revision, and each has its own parser:

* ``marker``  - ``RESULT: REAL|FAKE`` / ``CONFIDENCE: n`` / ``EXPLANATION: ...``
* ``verdict`` - ``CONFIDENCE_SCORE: n`` and ``FINAL_VERDICT: AUTHENTIC|DEEPFAKE|UNCERTAIN``,
  backed by phrase counting when the verdict marker is missing.

Their thresholds differ and both stay selectable; see ``get_parser``.
"""
import logging
import re
from dataclasses import dataclass, field

from .results import ScoreResult

logger = logging.getLogger(__name__)


@dataclass
class ParsedResponse:
    is_deepfake: bool
    confidence: float
    explanation: str
    verdict: str
    fake_phrases: list = field(default_factory=list)
    authentic_phrases: list = field(default_factory=list)


def _clamp(value, low, high):
    return max(low, min(high, value))


class ResponseParser:
    name = None
    prompt_template = None

    def build_prompt(self, media_kind):
        return self.prompt_template.format(kind=media_kind)

    def parse(self, text):
        raise NotImplementedError

    def to_result(self, text, synthesizer):
        parsed = self.parse(text or '')
        return ScoreResult(
            is_deepfake=parsed.is_deepfake,
            confidence=parsed.confidence,
            sub_scores=synthesizer.synthesize(parsed.confidence, parsed.is_deepfake),
            explanation=parsed.explanation,
            reasons=parsed.fake_phrases,
            engine=f'model:{self.name}',
            signals={
                'verdict': parsed.verdict,
                'fake_phrases': parsed.fake_phrases,
                'authentic_phrases': parsed.authentic_phrases,
            },
        )


class MarkerFormParser(ResponseParser):
    name = 'marker'
    default_confidence = 50

    prompt_template = (
        "Analyze this {kind} for signs of deepfake manipulation or AI generation.\n"
        "Answer in exactly this format:\n"
        "RESULT: REAL or FAKE\n"
        "CONFIDENCE: a whole number from 1 to 100\n"
        "EXPLANATION: a short technical justification")

    RESULT_RE = re.compile(r'^\s*RESULT\s*:\s*(REAL|FAKE)\b', re.I | re.M)
    CONFIDENCE_RE = re.compile(r'^\s*CONFIDENCE\s*:\s*(\d+)', re.I | re.M)
    # Runs until the next RESULT/CONFIDENCE line or the end of the answer
    EXPLANATION_RE = re.compile(
        r'^\s*EXPLANATION\s*:\s*(.*?)(?=^\s*(?:RESULT|CONFIDENCE)\s*:|\Z)', re.I | re.M | re.S)

    def parse(self, text):
        m = self.RESULT_RE.search(text)
        # Anything other than an explicit FAKE counts as not fake
        verdict = m.group(1).upper() if m else 'UNKNOWN'

        m = self.CONFIDENCE_RE.search(text)
        confidence = int(m.group(1)) if m else self.default_confidence

        m = self.EXPLANATION_RE.search(text)
        explanation = m.group(1).strip() if m else ''

        return ParsedResponse(
            is_deepfake=verdict == 'FAKE',
            confidence=float(_clamp(confidence, 0, 100)),
            explanation=explanation or text,
            verdict=verdict,
        )


FAKE_PHRASES = (
    'clearly artificial',
    'ai-generated',
    'ai generated',
    'computer-generated',
    'digitally created',
    'synthetic',
    'deepfake',
    'face swap',
    'stylegan',
    'diffusion',
    'gan artifacts',
    'blending artifacts',
    'too perfect',
    'overly smooth',
    'plastic-like',
    'waxy appearance',
    'unnatural skin',
    'no pores',
    'digital artifacts',
    'impossibly perfect',
    'lacks imperfections',
    'artificial smoothness',
    'unrealistic features',
    'inconsistent lighting',
)

AUTHENTIC_PHRASES = (
    'appears authentic',
    'natural photograph',
    'genuine photograph',
    'real photograph',
    'natural lighting',
    'natural skin texture',
    'visible pores',
    'natural imperfections',
    'natural asymmetry',
    'camera noise',
    'photographic grain',
    'candid photograph',
)


class FreeFormVerdictParser(ResponseParser):
    name = 'verdict'
    # An answer without a score leans authentic
    default_confidence = 75
    decision_threshold = 60
    uncertain_threshold = 65
    min_confidence = 10
    max_confidence = 95

    prompt_template = (
        "Analyze this {kind} for potential deepfake manipulation.\n"
        "You are a deepfake detection specialist. Most media is real: only call "
        "it manipulated when you see clear indicators such as blending artifacts "
        "around facial edges, lighting that defies physics, artifacts around eyes, "
        "teeth or hair, or artificially perfect skin.\n"
        "Confidence scale (0-100): 85-100 clearly authentic, 70-84 likely authentic, "
        "50-69 uncertain, 30-49 suspicious, 0-29 strong evidence of manipulation.\n"
        "Start with \"CONFIDENCE_SCORE: [number]\", give your technical analysis, "
        "and end with \"FINAL_VERDICT: AUTHENTIC\", \"FINAL_VERDICT: DEEPFAKE\" "
        "or \"FINAL_VERDICT: UNCERTAIN\".")

    # Tried in order; later patterns catch answers that ignore the requested format
    CONFIDENCE_RES = (
        re.compile(r'CONFIDENCE_SCORE\W*?:\W*(\d+)', re.I),
        re.compile(r'confidence[:\s]*(\d+)', re.I),
        re.compile(r'(\d+)(?:%|\s*confidence|\s*score)', re.I),
    )
    VERDICT_RE = re.compile(r'FINAL_VERDICT\W*?:\W*(AUTHENTIC|DEEPFAKE|UNCERTAIN)\b', re.I)
    MARKER_LINE_RE = re.compile(r'^.*\b(CONFIDENCE_SCORE|FINAL_VERDICT)\b.*$\n?', re.I | re.M)

    def __init__(self, fake_phrases=FAKE_PHRASES, authentic_phrases=AUTHENTIC_PHRASES):
        self.fake_phrases = fake_phrases
        self.authentic_phrases = authentic_phrases

    def _confidence(self, text):
        for pattern in self.CONFIDENCE_RES:
            m = pattern.search(text)
            if m:
                return int(m.group(1))
        return self.default_confidence

    def parse(self, text):
        confidence = self._confidence(text)
        m = self.VERDICT_RE.search(text)
        verdict = m.group(1).upper() if m else None

        lower = text.lower()
        fake_hits = [p for p in self.fake_phrases if p in lower]
        real_hits = [p for p in self.authentic_phrases if p in lower]
        fake_count, real_count = len(fake_hits), len(real_hits)

        if verdict == 'AUTHENTIC':
            is_deepfake = False
            confidence = max(confidence, 75)
        elif verdict == 'DEEPFAKE':
            is_deepfake = True
            confidence = min(confidence, 30)
        elif verdict == 'UNCERTAIN':
            if fake_count > 0 and real_count == 0:
                is_deepfake = True
                confidence = min(confidence, 30)
            else:
                is_deepfake = confidence < self.uncertain_threshold
        elif fake_count > 0 and real_count == 0:
            is_deepfake = True
            confidence = min(confidence, 25 + 5 * fake_count)
        elif real_count > 1 and fake_count == 0:
            is_deepfake = False
            confidence = max(confidence, 80)
        elif fake_count > 0 and real_count > 0:
            is_deepfake = True
            confidence = min(confidence, 40)
        else:
            is_deepfake = confidence < self.decision_threshold

        confidence = _clamp(confidence, self.min_confidence, self.max_confidence)
        logger.debug(
            "Parsed verdict=%s confidence=%s fake_phrases=%d authentic_phrases=%d",
            verdict, confidence, fake_count, real_count)

        explanation = self.MARKER_LINE_RE.sub('', text).strip()
        return ParsedResponse(
            is_deepfake=is_deepfake,
            confidence=float(confidence),
            explanation=explanation or text.strip(),
            verdict=verdict or 'NONE',
            fake_phrases=fake_hits,
            authentic_phrases=real_hits,
        )


PARSERS = {
    MarkerFormParser.name: MarkerFormParser,
    FreeFormVerdictParser.name: FreeFormVerdictParser,
}


def get_parser(name):
    try:
        return PARSERS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown response format {name!r}; expected one of {sorted(PARSERS)}") from None
