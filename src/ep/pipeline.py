"""Preset generation orchestrator.

Flow per request::

    sanitize -> cache lookup -> [skeleton] -> expand (retry once) -> score
             -> split -> validate -> cache store
                                  \\-> fallback preset on any failure

:meth:`PresetPipeline.generate_preset` never raises; every failure resolves
to the fallback preset with ``success`` telling callers whether the failure
was a quality decision (``True``) or a broken stage (``False``).
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional

from pydantic import ConfigDict, Field

from .cache import PresetCache, build_enriched_prompt, derive_cache_key, prompt_hash
from .config import PipelineConfig
from .genericness import log_genericness_summary, summarize_genericness
from .metrics import ATTEMPTS_TOTAL, CACHE_HITS_TOTAL, FALLBACK_TOTAL, SUCCESS_TOTAL, MetricsRegistry
from .models.backend import CompletionBackend
from .phases import StageName, expand_pass_label
from .phases.base import ExpandStageError, SkeletonStageError, StageAttempt, json_safe
from .phases.expand import expand_skeleton
from .phases.skeleton import generate_skeleton
from .sanitize import sanitize_answers, sanitize_prompt_input
from .schema import PresetModel, PresetOutput, fallback_preset, preset_payload, validate_preset
from .scoring import BagOfWordsScorer, CompletenessScorer
from .splitting import split_activities
from .telemetry import log_event
from .tools.run_logs import write_run_log

__all__ = [
    "PipelineInput",
    "PipelineMetadata",
    "PipelineResult",
    "PresetPipeline",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineInput:
    """One caller request."""

    user_id: str
    description: str
    answers: Mapping[str, Any] = field(default_factory=dict)
    category: Optional[str] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class PipelineMetadata(PresetModel):
    model_config = ConfigDict(protected_namespaces=())

    request_id: str
    user_id: str
    cached: bool = False
    fallback: bool = False
    attempts: int = 0
    model_passes: List[str] = Field(default_factory=list)
    prompt_hashes: List[str] = Field(default_factory=list)
    average_completeness: Optional[float] = None
    validation_errors: Optional[List[str]] = None
    generation_time_ms: int = 0


class PipelineResult(PresetModel):
    """What callers receive: always a preset, plus how it was obtained."""

    success: bool
    preset: PresetOutput
    error: Optional[str] = None
    metadata: PipelineMetadata

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "preset": preset_payload(self.preset),
            "metadata": self.metadata.model_dump(mode="json", by_alias=True),
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class _RunTrace:
    """Diagnostics collected for the optional run log."""

    attempts: list[StageAttempt] = field(default_factory=list)
    prompt_hash: str = ""
    cache_key: str = ""


class PresetPipeline:
    """Generate, score, split, validate and cache estimation presets."""

    def __init__(
        self,
        backend: CompletionBackend,
        *,
        config: PipelineConfig | None = None,
        cache: PresetCache | None = None,
        metrics: MetricsRegistry | None = None,
        scorer: CompletenessScorer | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._config = config or PipelineConfig()
        self._cache = cache if cache is not None else PresetCache.from_config(self._config)
        self._metrics = metrics if metrics is not None else MetricsRegistry()
        self._scorer = scorer or BagOfWordsScorer()
        self._clock = clock

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def metrics(self) -> MetricsRegistry:
        return self._metrics

    def generate_preset(
        self,
        user_id: str,
        description: str,
        answers: Mapping[str, Any] | None = None,
        category: str | None = None,
        request_id: str | None = None,
    ) -> PipelineResult:
        request = PipelineInput(
            user_id=user_id,
            description=description,
            answers=answers or {},
            category=category,
        )
        if request_id:
            request.request_id = request_id
        return self.run(request)

    def run(self, request: PipelineInput) -> PipelineResult:
        started = self._clock()
        self._metrics.inc(ATTEMPTS_TOTAL)
        metadata = PipelineMetadata(request_id=request.request_id, user_id=request.user_id)
        trace = _RunTrace()
        try:
            result = self._generate(request, metadata, trace)
        except Exception as error:  # noqa: BLE001
            LOGGER.exception("Preset pipeline failed for request %s", request.request_id)
            log_event(
                "pipeline_failed",
                request_id=request.request_id,
                level=logging.ERROR,
                error=f"{type(error).__name__}: {error}",
            )
            result = self._fallback(metadata, success=False, error=str(error) or type(error).__name__)

        result.metadata.generation_time_ms = int((self._clock() - started) * 1000)
        self._write_run_log(request, result, trace)
        return result

    def _generate(self, request: PipelineInput, metadata: PipelineMetadata, trace: _RunTrace) -> PipelineResult:
        config = self._config
        request_id = request.request_id

        description = sanitize_prompt_input(request.description)
        answers = sanitize_answers(request.answers)
        category = sanitize_prompt_input(request.category) or None
        enriched_prompt = build_enriched_prompt(description, answers, category)
        trace.prompt_hash = prompt_hash(enriched_prompt)
        trace.cache_key = derive_cache_key(enriched_prompt)
        metadata.prompt_hashes.append(trace.prompt_hash)

        log_event(
            "pipeline_start",
            request_id=request_id,
            user_id=request.user_id,
            prompt_hash=trace.prompt_hash,
            generation_enabled=config.generation_enabled,
            ensemble_enabled=config.ensemble_enabled,
        )

        cached = self._cache.load_preset(trace.cache_key)
        if cached is not None:
            self._metrics.inc(CACHE_HITS_TOTAL)
            metadata.cached = True
            log_event("cache_hit", request_id=request_id, prompt_hash=trace.prompt_hash)
            return PipelineResult(success=True, preset=cached, metadata=metadata)

        if not config.generation_enabled:
            log_event("generation_disabled_fallback", request_id=request_id)
            return self._fallback(metadata, success=True)

        skeleton_activities: list[dict[str, Any]] = []
        if config.ensemble_enabled:
            metadata.model_passes.append(StageName.SKELETON.value)
            try:
                skeleton = generate_skeleton(
                    self._backend,
                    enriched_prompt,
                    max_output_tokens=config.skeleton_max_tokens,
                    attempts=trace.attempts,
                )
            except SkeletonStageError as error:
                log_event("skeleton_failed", request_id=request_id, level=logging.ERROR, error=str(error))
                return self._fallback(metadata, success=False, error=str(error))
            skeleton_activities = skeleton.activities
            log_event("skeleton_generated", request_id=request_id, activity_count=len(skeleton_activities))

        candidate, stage_error = self._expand_until_accepted(
            enriched_prompt,
            description,
            skeleton_activities,
            metadata,
            trace,
        )
        if candidate is None:
            if stage_error is not None:
                return self._fallback(metadata, success=False, error=stage_error)
            log_event(
                "completeness_threshold_failed",
                request_id=request_id,
                level=logging.WARNING,
                average_completeness=metadata.average_completeness,
                threshold=config.completeness_threshold,
            )
            return self._fallback(metadata, success=True)

        candidate["activities"] = split_activities(candidate["activities"], config.max_hours)

        validation = validate_preset(
            candidate,
            min_activities=config.min_activities,
            max_activities=config.max_activities,
        )
        if not validation.ok or validation.preset is None:
            metadata.validation_errors = validation.errors
            log_event("validation_failed", request_id=request_id, level=logging.ERROR, errors=validation.errors)
            return self._fallback(metadata, success=True)

        preset = validation.preset
        self._sanity_check(preset, request_id)
        log_genericness_summary(
            summarize_genericness(preset_payload(preset)["activities"]),
            request_id=request_id,
            tech_category=preset.tech_category.value,
        )

        if self._cache.store_preset(trace.cache_key, preset, config.cache_ttl_seconds):
            log_event(
                "cache_set",
                request_id=request_id,
                prompt_hash=trace.prompt_hash,
                ttl_days=config.cache_ttl_days,
            )
        else:
            log_event("cache_set_failed", request_id=request_id, level=logging.WARNING)

        self._metrics.inc(SUCCESS_TOTAL)
        log_event(
            "pipeline_success",
            request_id=request_id,
            activity_count=len(preset.activities),
            attempts=metadata.attempts,
            average_completeness=metadata.average_completeness,
        )
        return PipelineResult(success=True, preset=preset, metadata=metadata)

    def _expand_until_accepted(
        self,
        enriched_prompt: str,
        description: str,
        skeleton_activities: list[dict[str, Any]],
        metadata: PipelineMetadata,
        trace: _RunTrace,
    ) -> tuple[dict[str, Any] | None, str | None]:
        """Return ``(candidate, None)`` once one clears the threshold.

        ``(None, error)`` means every attempt failed at the stage level;
        ``(None, None)`` means at least one candidate was scored but none
        was good enough.
        """
        config = self._config
        direct = not config.ensemble_enabled
        stage = StageName.DIRECT.value if direct else StageName.EXPAND.value
        last_error: str | None = None
        scored = False

        for attempt in range(1, config.max_expand_attempts + 1):
            temperature = config.expand_temperature(attempt)
            metadata.attempts = attempt
            metadata.model_passes.append(stage if direct else expand_pass_label(temperature))
            try:
                candidate = expand_skeleton(
                    self._backend,
                    skeleton_activities,
                    enriched_prompt,
                    temperature=temperature,
                    max_output_tokens=config.expand_max_tokens,
                    attempt=attempt,
                    attempts=trace.attempts,
                    stage=stage,
                )
            except ExpandStageError as error:
                last_error = str(error)
                log_event(
                    "expand_failed",
                    request_id=metadata.request_id,
                    level=logging.WARNING,
                    attempt=attempt,
                    temperature=temperature,
                    error=last_error,
                )
                continue

            score = self._scorer.score(candidate["activities"], description)
            scored = True
            metadata.average_completeness = score.average_completeness
            if trace.attempts:
                trace.attempts[-1].average_completeness = score.average_completeness
            log_event(
                "expand_completed",
                request_id=metadata.request_id,
                attempt=attempt,
                temperature=temperature,
                activity_count=len(candidate["activities"]),
                average_completeness=round(score.average_completeness, 4),
                threshold=config.completeness_threshold,
            )
            if score.average_completeness >= config.completeness_threshold:
                return candidate, None

        return None, (None if scored else last_error)

    def _sanity_check(self, preset: PresetOutput, request_id: str) -> None:
        config = self._config
        count = len(preset.activities)
        if not config.min_activities <= count <= config.max_activities:
            log_event(
                "activity_count_out_of_range",
                request_id=request_id,
                level=logging.WARNING,
                count=count,
                range=[config.min_activities, config.max_activities],
            )
        oversized = [activity for activity in preset.activities if activity.estimated_hours > config.max_hours]
        if oversized:
            log_event(
                "oversized_activities_detected",
                request_id=request_id,
                level=logging.WARNING,
                activities=[{"title": item.title, "hours": item.estimated_hours} for item in oversized],
            )

    def _fallback(self, metadata: PipelineMetadata, *, success: bool, error: str | None = None) -> PipelineResult:
        self._metrics.inc(FALLBACK_TOTAL)
        if success:
            self._metrics.inc(SUCCESS_TOTAL)
        metadata.fallback = True
        return PipelineResult(success=success, preset=fallback_preset(), error=error, metadata=metadata)

    def _write_run_log(self, request: PipelineInput, result: PipelineResult, trace: _RunTrace) -> None:
        logs_dir = self._config.logs_dir
        if logs_dir is None:
            return
        payload = {
            "success": result.success,
            "error": result.error,
            "user_id": request.user_id,
            "prompt_hash": trace.prompt_hash,
            "cache_key": trace.cache_key,
            "metadata": result.metadata.model_dump(mode="json"),
            "attempts": [json_safe(attempt) for attempt in trace.attempts],
            "model": self._backend.model,
        }
        write_run_log(logs_dir, request.request_id, payload)
