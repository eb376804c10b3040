"""Optional Presidio NER pass for person names.

The regex table only catches self-introductions ("my name is ...").
With ``use_presidio`` on, Presidio's spaCy-backed analyzer finds the
rest and the redactor files them under the ``name`` category.
Requires the ``presidio`` extra.
"""

from __future__ import annotations
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine

logger = logging.getLogger(__name__)

# Lazy: spaCy loads on first use
_engine: AnalyzerEngine | None = None
_engine_lang: str = ""

DEFAULT_ENTITIES = ["PERSON"]


def _get_engine(language: str = "en") -> AnalyzerEngine:
    global _engine, _engine_lang
    if _engine is None or _engine_lang != language:
        from presidio_analyzer import AnalyzerEngine
        from presidio_analyzer.nlp_engine import NlpEngineProvider

        logger.info("loading presidio analyzer for %r", language)
        provider = NlpEngineProvider(nlp_configuration={
            "nlp_engine_name": "spacy",
            "models": [{"lang_code": language, "model_name": f"{language}_core_web_sm"}],
        })
        _engine = AnalyzerEngine(nlp_engine=provider.create_engine(), supported_languages=[language])
        _engine_lang = language
    return _engine


def scan_names(
    text: str,
    *,
    language: str = "en",
    entities: list[str] | None = None,
    score_threshold: float = 0.35,
    exclude_spans: list[tuple[int, int]] | None = None,
) -> list[tuple[int, int]]:
    """Return sorted, non-overlapping ``(start, end)`` spans of names.

    Spans overlapping *exclude_spans* (existing placeholders) are dropped.
    """
    engine = _get_engine(language)
    results = engine.analyze(
        text=text,
        language=language,
        entities=entities or DEFAULT_ENTITIES,
        score_threshold=score_threshold,
    )

    taken = list(exclude_spans or [])
    spans: list[tuple[int, int]] = []
    for r in sorted(results, key=lambda r: (-r.score, r.start)):
        if any(r.start < e and r.end > s for s, e in taken):
            continue
        spans.append((r.start, r.end))
        taken.append((r.start, r.end))
    return sorted(spans)
