"""Two-stage retrieval: free text -> vocabulary keywords -> tag candidates -> verified subset.

The pipeline is an explicit state machine::

    START -> KEYWORD_EXTRACTION -> CANDIDATE_FETCH -> CANDIDATE_FILTER -> DONE

``PipelineState`` is an immutable value; each stage has one transition
function returning the next state. There are no retries: any collaborator
or index failure propagates and fails the whole run.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from core.classifier import Classifier, RelevanceJudge
from storage.contracts import TagIndexRepo
from storage.models import Candidate

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    START = "start"
    KEYWORD_EXTRACTION = "keyword_extraction"
    CANDIDATE_FETCH = "candidate_fetch"
    CANDIDATE_FILTER = "candidate_filter"
    DONE = "done"


@dataclass(frozen=True)
class PipelineState:
    stage: Stage
    text: str
    vocabulary: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    candidates: tuple[Candidate, ...] = ()
    selected: tuple[Candidate, ...] = ()


def normalize_keywords(raw: Any, vocabulary: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Flatten classifier output to unique strings that exist in ``vocabulary``."""
    allowed = set(vocabulary)
    seen: dict[str, None] = {}

    def _walk(value: Any) -> None:
        if isinstance(value, str):
            word = value.strip()
            if word in allowed:
                seen.setdefault(word, None)
            elif word:
                logger.info("Dropping keyword outside the tag vocabulary: %r", word)
        elif isinstance(value, (list, tuple, set)):
            for item in value:
                _walk(item)

    _walk(raw)
    return tuple(seen)


def verbatim_filter(selected: list[Candidate], candidates: list[Candidate] | tuple[Candidate, ...]) -> tuple[Candidate, ...]:
    """Keep only selections whose path is byte-identical to a shown candidate.

    Descriptions come from the candidate list, not from the judge.
    """
    by_path = {c.path: c for c in candidates}
    kept: dict[str, Candidate] = {}
    for item in selected:
        original = by_path.get(item.path)
        if original is None:
            logger.warning("Dropping fabricated path from relevance judge: %r", item.path)
            continue
        kept.setdefault(original.path, original)
    return tuple(kept.values())


@dataclass
class RetrievalResult:
    keywords: list[str] = field(default_factory=list)
    candidates: list[Candidate] = field(default_factory=list)
    selected: list[Candidate] = field(default_factory=list)


class RetrievalPipeline:
    """Turn a request into a verified candidate set drawn from the tag index."""

    def __init__(self, tag_index: TagIndexRepo, classifier: Classifier, judge: RelevanceJudge):
        self.tag_index = tag_index
        self.classifier = classifier
        self.judge = judge
        self._transitions: dict[Stage, Callable[[PipelineState], Awaitable[PipelineState]]] = {
            Stage.START: self._start,
            Stage.KEYWORD_EXTRACTION: self._extract_keywords,
            Stage.CANDIDATE_FETCH: self._fetch_candidates,
            Stage.CANDIDATE_FILTER: self._filter_candidates,
        }

    async def run(self, text: str) -> RetrievalResult:
        state = PipelineState(stage=Stage.START, text=text)
        while state.stage is not Stage.DONE:
            state = await self.step(state)
        return RetrievalResult(
            keywords=list(state.keywords),
            candidates=list(state.candidates),
            selected=list(state.selected),
        )

    async def step(self, state: PipelineState) -> PipelineState:
        transition = self._transitions.get(state.stage)
        if transition is None:
            raise ValueError(f"No transition out of stage {state.stage.value}")
        return await transition(state)

    async def _start(self, state: PipelineState) -> PipelineState:
        vocabulary = await self.tag_index.all_tags()
        logger.info("All tags: %s", vocabulary)
        return replace(state, stage=Stage.KEYWORD_EXTRACTION, vocabulary=tuple(vocabulary))

    async def _extract_keywords(self, state: PipelineState) -> PipelineState:
        raw = await self.classifier.extract_keywords(state.text, list(state.vocabulary))
        keywords = normalize_keywords(raw, state.vocabulary)
        logger.info("Tags chosen by agent: %s", list(keywords))
        return replace(state, stage=Stage.CANDIDATE_FETCH, keywords=keywords)

    async def _fetch_candidates(self, state: PipelineState) -> PipelineState:
        records = await self.tag_index.find_by_tags(set(state.keywords))
        candidates = tuple(Candidate.from_record(r) for r in records)
        logger.info("Candidate files: %d", len(candidates))
        for idx, c in enumerate(candidates):
            logger.debug("  %d. %s (%s)", idx, c.path, c.description)
        return replace(state, stage=Stage.CANDIDATE_FILTER, candidates=candidates)

    async def _filter_candidates(self, state: PipelineState) -> PipelineState:
        if not state.candidates:
            return replace(state, stage=Stage.DONE, selected=())
        chosen = await self.judge.select(state.text, list(state.candidates))
        selected = verbatim_filter(chosen, state.candidates)
        logger.info("Final chosen files: %s", [c.path for c in selected])
        return replace(state, stage=Stage.DONE, selected=selected)
