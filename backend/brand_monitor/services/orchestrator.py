"""
Analysis Orchestrator
Runs discovery, prompt generation, per-prompt/per-provider querying,
aggregation and scoring, reporting progress as it goes
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from brand_monitor.adapters.llm import (
    BaseLLMAdapter,
    LLMAdapterError,
    NoProvidersConfiguredError,
    ProviderInfo,
    get_extraction_handle,
    get_model_handle,
    list_configured_providers,
    normalize_provider_name,
)
from brand_monitor.adapters.parsing import normalize_company_name
from brand_monitor.config import get_settings
from brand_monitor.schemas import (
    AnalysisResult,
    AnalysisStage,
    BrandAnalysis,
    BrandPrompt,
    Company,
    FailedUnit,
    ProgressEvent,
    ProgressEventType,
)
from brand_monitor.utils.progress import NullProgressSink, ProgressSink
from .aggregator import aggregate, aggregate_by_provider, build_provider_comparison
from .competitor_discovery import CompetitorDiscovery
from .prompt_engine import PromptEngine, PromptGenerationError
from .response_interpreter import ResponseInterpreter
from .scoring_engine import ScoringEngine

logger = logging.getLogger(__name__)

UnitOutcome = Union[AnalysisResult, FailedUnit]


@dataclass
class AnalysisUnit:
    """One prompt sent to one provider"""
    prompt: BrandPrompt
    provider: str
    handle: BaseLLMAdapter


class AnalysisOrchestrator:
    """
    Sequences a full brand analysis run.

    Stages: discovering-competitors -> generating-prompts ->
    analyzing-prompts -> aggregating -> scoring -> done, with error
    reachable from any stage. A failing prompt x provider unit is recorded
    and skipped; only when every unit fails does the run end in error.
    """

    def __init__(
        self,
        sink: Optional[ProgressSink] = None,
        interpreter: Optional[ResponseInterpreter] = None,
        discovery: Optional[CompetitorDiscovery] = None,
        prompt_engine: Optional[PromptEngine] = None,
        scoring_engine: Optional[ScoringEngine] = None,
        list_providers: Callable[[], List[ProviderInfo]] = list_configured_providers,
        get_handle: Callable[[str], Optional[BaseLLMAdapter]] = get_model_handle,
        extraction_router: Callable[[BaseLLMAdapter], BaseLLMAdapter] = get_extraction_handle,
    ):
        self.sink = sink or NullProgressSink()
        self.prompt_engine = prompt_engine or PromptEngine()
        self.interpreter = interpreter or ResponseInterpreter(self.prompt_engine)
        self.discovery = discovery or CompetitorDiscovery(self.prompt_engine)
        self.scoring_engine = scoring_engine or ScoringEngine()
        self.list_providers = list_providers
        self.get_handle = get_handle
        self.extraction_router = extraction_router
        self.settings = get_settings()

    def _emit(self, event_type: ProgressEventType, event_stage: AnalysisStage, **data) -> None:
        self.sink.emit(ProgressEvent(type=event_type, stage=event_stage, data=data))

    def _enter_stage(self, stage: AnalysisStage, message: str) -> AnalysisStage:
        logger.info(f"Stage {stage.value}: {message}")
        self._emit(ProgressEventType.STAGE, stage, stage=stage.value, message=message)
        return stage

    def resolve_providers(self, provider_ids: Optional[Sequence[str]] = None) -> Dict[str, BaseLLMAdapter]:
        """
        Display name -> model handle for every usable provider.

        Raises:
            NoProvidersConfiguredError: Nothing usable remains
        """
        wanted = {normalize_provider_name(p) for p in provider_ids} if provider_ids else None
        handles: Dict[str, BaseLLMAdapter] = {}

        for info in self.list_providers():
            if wanted is not None and info.id not in wanted:
                continue
            handle = self.get_handle(info.id)
            if handle is None:
                logger.warning(f"Provider {info.name} unavailable, skipping")
                continue
            handles[info.name] = handle

        if not handles:
            raise NoProvidersConfiguredError()
        return handles

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(
        self,
        company: Company,
        competitors: Optional[Sequence[str]] = None,
        prompts: Optional[Sequence[str]] = None,
        providers: Optional[Sequence[str]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BrandAnalysis:
        """
        Analyze ``company`` end to end.

        Args:
            company: The company being analyzed
            competitors: User-selected competitors (skips discovery)
            prompts: Custom prompt texts (skips generation)
            providers: Restrict to these provider ids
            cancel_event: Set it to stop the run; finished units are kept

        Returns:
            BrandAnalysis; status "error" when nothing could be analyzed

        Raises:
            NoProvidersConfiguredError: Before any work, if no provider is usable
        """
        handles = self.resolve_providers(providers)
        cancel_event = cancel_event or asyncio.Event()
        deadline = asyncio.get_running_loop().time() + self.settings.ANALYSIS_MAX_DURATION

        analysis = BrandAnalysis(company=company, providers_used=list(handles))
        self._emit(
            ProgressEventType.START,
            AnalysisStage.DISCOVERING_COMPETITORS,
            company=company.name,
            providers=analysis.providers_used,
        )

        stage = AnalysisStage.DISCOVERING_COMPETITORS
        try:
            if not cancel_event.is_set():
                stage = self._enter_stage(stage, "Identifying competitors")
                analysis.competitors = await self._competitors(company, competitors, handles)

            if not cancel_event.is_set():
                stage = self._enter_stage(AnalysisStage.GENERATING_PROMPTS, "Generating analysis prompts")
                analysis.prompts = await self._prompts(company, analysis.competitors, prompts, handles, deadline)
        except (LLMAdapterError, PromptGenerationError, asyncio.TimeoutError) as e:
            return self._fail(analysis, stage, str(e) or type(e).__name__)

        units = [
            AnalysisUnit(prompt=prompt, provider=provider, handle=handle)
            for prompt in analysis.prompts
            for provider, handle in handles.items()
        ]

        results: List[AnalysisResult] = []
        if units and not cancel_event.is_set():
            self._enter_stage(
                AnalysisStage.ANALYZING_PROMPTS,
                f"Analyzing {len(analysis.prompts)} prompts across {len(handles)} providers",
            )
            results, analysis.failed_units, analysis.partial = await self._analyze(
                units, company, analysis.competitors, deadline, cancel_event
            )
        elif cancel_event.is_set():
            analysis.partial = True

        analysis.responses = results
        self._aggregate(analysis)

        if units and not results and not cancel_event.is_set():
            return self._fail(
                analysis,
                AnalysisStage.ANALYZING_PROMPTS,
                "Run time limit reached before any prompt was analyzed"
                if analysis.partial
                else f"All providers failed for all {len(analysis.prompts)} prompts",
            )

        analysis.status = "done"
        self._emit(
            ProgressEventType.COMPLETE,
            AnalysisStage.DONE,
            scores=analysis.scores.model_dump(),
            responses=len(results),
            failed=len(analysis.failed_units),
            partial=analysis.partial,
        )
        logger.info(
            f"Analysis of {company.name} done: {len(results)} responses, "
            f"{len(analysis.failed_units)} failed, overall {analysis.scores.overall_score}"
        )
        return analysis

    def _fail(self, analysis: BrandAnalysis, stage: AnalysisStage, message: str) -> BrandAnalysis:
        logger.error(f"Analysis of {analysis.company.name} failed during {stage.value}: {message}")
        analysis.status = "error"
        analysis.error = message
        self._emit(ProgressEventType.ERROR, AnalysisStage.ERROR, stage=stage.value, message=message)
        return analysis

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _competitors(
        self,
        company: Company,
        selected: Optional[Sequence[str]],
        handles: Dict[str, BaseLLMAdapter],
    ) -> List[str]:
        if selected is None:
            first_handle = next(iter(handles.values()))
            return await self.discovery.identify_competitors(company, first_handle, self.sink)

        competitors = self._dedupe_selected(company, selected)
        for index, name in enumerate(competitors):
            self._emit(
                ProgressEventType.COMPETITOR_FOUND,
                AnalysisStage.DISCOVERING_COMPETITORS,
                competitor=name,
                index=index + 1,
                total=len(competitors),
            )
        return competitors

    def _dedupe_selected(self, company: Company, selected: Sequence[str]) -> List[str]:
        """User selection bypasses the model; only duplicates and the company itself are dropped"""
        seen = {normalize_company_name(company.name)}
        competitors = []
        for name in selected:
            key = normalize_company_name(name)
            if key and key not in seen:
                seen.add(key)
                competitors.append(name.strip())
        return competitors

    async def _prompts(
        self,
        company: Company,
        competitors: List[str],
        custom: Optional[Sequence[str]],
        handles: Dict[str, BaseLLMAdapter],
        deadline: float,
    ) -> List[BrandPrompt]:
        if custom:
            prompts = self.prompt_engine.custom_prompts(custom)
        else:
            prompts = await self._generate_prompts(company, competitors, handles, deadline)

        for prompt in prompts:
            self._emit(
                ProgressEventType.PROMPT_GENERATED,
                AnalysisStage.GENERATING_PROMPTS,
                prompt_id=prompt.id,
                prompt=prompt.prompt,
                category=prompt.category,
            )
        return prompts

    async def _generate_prompts(
        self,
        company: Company,
        competitors: List[str],
        handles: Dict[str, BaseLLMAdapter],
        deadline: float,
    ) -> List[BrandPrompt]:
        """Try providers in order until one produces prompts"""
        last_error: Exception = PromptGenerationError("No provider produced prompts")
        loop = asyncio.get_running_loop()

        for provider, handle in handles.items():
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise asyncio.TimeoutError("Run time limit reached while generating prompts")
            try:
                return await asyncio.wait_for(
                    self.prompt_engine.generate_prompts(company, competitors, handle),
                    timeout=min(self.settings.LLM_REQUEST_TIMEOUT, remaining),
                )
            except (LLMAdapterError, PromptGenerationError, asyncio.TimeoutError) as e:
                last_error = e
                logger.warning(f"Prompt generation with {provider} failed: {e!r}")

        raise last_error

    async def _run_unit(self, unit: AnalysisUnit, semaphore: asyncio.Semaphore, company: Company,
                        competitors: List[str]) -> UnitOutcome:
        async with semaphore:
            self._emit(
                ProgressEventType.ANALYSIS_START,
                AnalysisStage.ANALYZING_PROMPTS,
                prompt_id=unit.prompt.id,
                prompt=unit.prompt.prompt,
                provider=unit.provider,
            )
            timeout = self.settings.ANALYSIS_UNIT_TIMEOUT
            try:
                result = await asyncio.wait_for(
                    self.interpreter.analyze_prompt(
                        unit.prompt.prompt,
                        unit.provider,
                        unit.handle,
                        company.name,
                        competitors,
                        extraction_model=self.extraction_router(unit.handle),
                    ),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                logger.error(f"{unit.provider} timed out after {timeout}s on prompt {unit.prompt.id}")
                return self._unit_failed(unit, f"Timed out after {timeout}s")
            except LLMAdapterError as e:
                logger.error(f"{unit.provider} failed on prompt {unit.prompt.id}: {e}")
                return self._unit_failed(unit, str(e) or type(e).__name__)

        self._emit(
            ProgressEventType.ANALYSIS_COMPLETE,
            AnalysisStage.ANALYZING_PROMPTS,
            prompt_id=unit.prompt.id,
            prompt=unit.prompt.prompt,
            provider=unit.provider,
            status="completed",
        )
        self._emit(
            ProgressEventType.PARTIAL_RESULT,
            AnalysisStage.ANALYZING_PROMPTS,
            prompt_id=unit.prompt.id,
            prompt=unit.prompt.prompt,
            provider=unit.provider,
            brand_mentioned=result.brand_mentioned,
            brand_position=result.brand_position,
            sentiment=result.sentiment.value,
            competitors=result.competitors_mentioned,
            strategy=result.strategy,
        )
        return result

    def _unit_failed(self, unit: AnalysisUnit, error: str) -> FailedUnit:
        self._emit(
            ProgressEventType.ANALYSIS_COMPLETE,
            AnalysisStage.ANALYZING_PROMPTS,
            prompt_id=unit.prompt.id,
            prompt=unit.prompt.prompt,
            provider=unit.provider,
            status="failed",
            error=error,
        )
        return FailedUnit(prompt=unit.prompt.prompt, provider=unit.provider, error=error)

    async def _analyze(
        self,
        units: List[AnalysisUnit],
        company: Company,
        competitors: List[str],
        deadline: float,
        cancel_event: asyncio.Event,
    ) -> Tuple[List[AnalysisResult], List[FailedUnit], bool]:
        """
        Run every unit concurrently under the semaphore until all finish,
        the run deadline passes, or ``cancel_event`` is set. Unfinished units
        are cancelled and reported as failed; finished ones are kept.
        """
        loop = asyncio.get_running_loop()
        semaphore = asyncio.Semaphore(self.settings.MAX_CONCURRENT_PROVIDER_CALLS)
        tasks = [
            asyncio.create_task(self._run_unit(unit, semaphore, company, competitors))
            for unit in units
        ]
        cancel_waiter = asyncio.create_task(cancel_event.wait())
        stop_reason: Optional[str] = None
        completed = 0

        try:
            while True:
                pending = [t for t in tasks if not t.done()]
                if not pending:
                    break
                remaining = deadline - loop.time()
                if remaining <= 0:
                    stop_reason = "Run time limit reached"
                    break

                done, _ = await asyncio.wait(
                    pending + [cancel_waiter],
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                finished = len([t for t in done if t is not cancel_waiter])
                if finished:
                    completed += finished
                    self._emit(
                        ProgressEventType.PROGRESS,
                        AnalysisStage.ANALYZING_PROMPTS,
                        completed=completed,
                        total=len(tasks),
                    )
                if cancel_waiter in done:
                    stop_reason = "Analysis cancelled"
                    break
                if not done:
                    stop_reason = "Run time limit reached"
                    break
        finally:
            cancel_waiter.cancel()
            unfinished = [t for t in tasks if not t.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        if stop_reason:
            logger.warning(f"{stop_reason}; keeping {sum(1 for t in tasks if not t.cancelled())} finished units")

        results: List[AnalysisResult] = []
        failed: List[FailedUnit] = []
        for unit, task in zip(units, tasks):
            if task.cancelled():
                failed.append(FailedUnit(prompt=unit.prompt.prompt, provider=unit.provider, error=stop_reason or "cancelled"))
                continue
            outcome = task.result()
            if isinstance(outcome, AnalysisResult):
                results.append(outcome)
            else:
                failed.append(outcome)

        return results, failed, stop_reason is not None

    def _aggregate(self, analysis: BrandAnalysis) -> None:
        brand = analysis.company.name
        results = analysis.responses

        self._enter_stage(AnalysisStage.AGGREGATING, f"Aggregating {len(results)} responses")
        analysis.competitor_rankings = aggregate(results, brand, analysis.competitors)
        self._emit(ProgressEventType.PROGRESS, AnalysisStage.AGGREGATING, scope="global")

        analysis.provider_rankings = aggregate_by_provider(
            results, brand, analysis.competitors, providers=analysis.providers_used
        )
        for provider_ranking in analysis.provider_rankings:
            self._emit(
                ProgressEventType.PROGRESS,
                AnalysisStage.AGGREGATING,
                scope="provider",
                provider=provider_ranking.provider,
            )
        analysis.provider_comparison = build_provider_comparison(analysis.provider_rankings)

        self._emit(ProgressEventType.SCORING_START, AnalysisStage.SCORING)
        analysis.scores = self.scoring_engine.score_rankings(analysis.competitor_rankings, len(results))
