"""Analysis orchestrator: documents in, classified AnalysisResult out.

High-level flow:
  prompt -> generate -> parse -> classify -> summarize

By default every document goes into one prompt. With per_document=True each
document is extracted in its own call (bounded by a semaphore) and the
candidates are merged by the classifier's tie-break.

Transport, authentication and malformed-output errors abort the run and are
raised to the caller. Per-field validation problems never abort; they land in
AnalysisResult.validation_issues and in the field's classification.
"""

import asyncio
import time
from pathlib import Path
from typing import Sequence

from vsme_assistant.backends.base import GenerationBackend
from vsme_assistant.core.classifier import build_source_summary, classify_fields
from vsme_assistant.core.config import AnalysisSettings
from vsme_assistant.core.cost_estimator import CostEstimate, estimate_cost
from vsme_assistant.core.cost_tracker import CostTracker
from vsme_assistant.core.errors import (
    AnalysisInProgressError,
    BackendError,
    EmptyDocumentSetError,
    ErrorSeverity,
    PipelineErrors,
    VSMEAssistantError,
    backend_error,
    llm_parse_error,
    validation_error,
)
from vsme_assistant.core.pipeline_logger import get_logger
from vsme_assistant.core.response_parser import ParsedResponse, parse_extraction_response
from vsme_assistant.prompts.extraction_prompt import build_extraction_prompt
from vsme_assistant.pydantic_models.documents import Document
from vsme_assistant.pydantic_models.extraction_models import AnalysisResult, IssueSeverity
from vsme_assistant.pydantic_models.form_schema import VSME_CORE_FIELDS, VSMEFormField


class DocumentAnalyzer:
    """Runs extraction over a document set, one run at a time.

    Usage:
        analyzer = DocumentAnalyzer(create_backend(session))
        if analyzer.can_analyze(documents):
            print(analyzer.estimate(documents).to_dict())
            result = await analyzer.analyze(documents, instructions="FY2024 only")
    """

    def __init__(
        self,
        backend: GenerationBackend,
        schema: Sequence[VSMEFormField] = VSME_CORE_FIELDS,
        settings: AnalysisSettings | None = None,
        verbose: bool = False,
        log_dir: str | Path | None = None,
    ):
        """Initialize the analyzer.

        Args:
            backend: Generation backend (connected lazily on first run).
            schema: Form fields to extract.
            settings: Per-run tunables (thresholds, per-document mode).
            verbose: If True, print detailed logs.
            log_dir: Directory for log files.
        """
        self.backend = backend
        self.schema = tuple(schema)
        self.settings = settings or AnalysisSettings()
        self.logger = get_logger(verbose=verbose, log_dir=log_dir)
        self.errors = PipelineErrors()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def can_analyze(self, documents: Sequence[Document]) -> bool:
        """False for an empty set or a set of blank documents."""
        return any(not doc.is_blank for doc in documents)

    def estimate(self, documents: Sequence[Document]) -> CostEstimate:
        """Pre-flight cost band for analyzing these documents."""
        return estimate_cost(
            self.backend.model_id,
            [len(doc.content) for doc in documents],
            field_count=len(self.schema),
        )

    async def analyze(
        self, documents: Sequence[Document], instructions: str | None = None
    ) -> AnalysisResult:
        """Run one extraction over a document set.

        Args:
            documents: Decoded documents in upload order.
            instructions: Optional free-text context for the model.

        Returns:
            AnalysisResult with the found fields partitioned into filled and
            needs-verification, plus the schema fields nobody found.

        Raises:
            EmptyDocumentSetError: No usable document. Raised before any backend call.
            AnalysisInProgressError: A run is already in flight.
            BackendError: Transport or authentication failure.
            MalformedResponseError: The model returned no parseable JSON.
        """
        if not self.can_analyze(documents):
            raise EmptyDocumentSetError()
        if self._running:
            raise AnalysisInProgressError()

        self._running = True
        self.errors = PipelineErrors()
        tracker = CostTracker()
        usable = [doc for doc in documents if not doc.is_blank]
        start = time.time()

        self.logger.start_run(
            "per-document" if self.settings.per_document else "combined",
            len(usable),
            model=self.backend.model_id,
        )
        try:
            if not self.backend.is_connected:
                await self.backend.connect()

            self.logger.start_phase("extract", total=len(usable) if self.settings.per_document else 1)
            if self.settings.per_document:
                parsed, truncated = await self._extract_per_document(usable, instructions, tracker)
            else:
                parsed, truncated = await self._extract(usable, instructions, tracker, label="all")
            self.logger.phase_result(
                "extracted",
                records=len(parsed.fields),
                found=len(parsed.found_fields),
                issues=len(parsed.issues),
            )

            self.logger.start_phase("classify")
            classification = classify_fields(parsed.fields, self.schema)
            issues = parsed.issues + classification.issues
            for issue in issues:
                self.errors.add(validation_error(
                    issue.message,
                    phase="classify",
                    field_name=issue.field_name,
                    severity=ErrorSeverity.ERROR if issue.severity == IssueSeverity.ERROR else ErrorSeverity.WARNING,
                    raw=issue.raw,
                ))
            self.logger.phase_result(
                "classified",
                filled=len(classification.filled),
                verify=len(classification.verification),
                not_found=len(classification.not_found),
                conflicts=len(classification.conflicts),
            )

            result = AnalysisResult(
                fields_successfully_filled=classification.filled,
                fields_not_found=classification.not_found,
                fields_requiring_verification=classification.verification,
                source_summary=build_source_summary(
                    classification.filled + classification.verification, usable
                ),
                validation_issues=issues,
                truncated_documents=truncated,
                total_tokens_used=tracker.total_tokens,
                estimated_cost=round(tracker.total_cost, 6),
                processing_time=round(time.time() - start, 3),
                model=self.backend.model_id,
            )
        except BaseException as e:
            # Cancellation and unexpected errors close the run too
            self.logger.error("Analysis aborted", exc=e)
            if isinstance(e, BackendError):
                self.errors.add(backend_error(str(e), phase="extract", original=e))
            self.logger.end_run(success=False)
            raise
        finally:
            self._running = False

        self.logger.end_run(success=True, stats={
            "fields": {
                "filled": len(result.fields_successfully_filled),
                "needs_verification": len(result.fields_requiring_verification),
                "not_found": len(result.fields_not_found),
            },
            "issues": self.errors.summary(),
            "tokens": result.total_tokens_used,
            "cost_usd": f"${result.estimated_cost:.4f}",
        })
        return result

    async def _extract(
        self,
        documents: Sequence[Document],
        instructions: str | None,
        tracker: CostTracker,
        label: str,
        document: str | None = None,
    ) -> tuple[ParsedResponse, list[str]]:
        """One prompt -> generate -> parse round trip."""
        prompt = build_extraction_prompt(
            self.schema,
            documents,
            instructions=instructions,
            max_document_chars=self.settings.max_document_chars or self.backend.context_chars,
            numeric_confidence=self.backend.numeric_confidence,
        )
        self.logger.truncated(prompt.truncated_documents)

        self.logger.debug(f"Generating [{label}]", prompt_chars=len(prompt.user_prompt))
        generation = await self.backend.generate(prompt.user_prompt, system_prompt=prompt.system_prompt)
        text = generation.raise_for_error()
        tracker.record(self.backend.model_id, generation.usage, label=label)

        try:
            parsed = parse_extraction_response(text, self.settings, document=document)
        except VSMEAssistantError as e:
            self.errors.add(llm_parse_error(str(e), phase="parse", raw_response=text))
            raise
        return parsed, list(prompt.truncated_documents)

    async def _extract_per_document(
        self,
        documents: Sequence[Document],
        instructions: str | None,
        tracker: CostTracker,
    ) -> tuple[ParsedResponse, list[str]]:
        """Extract each document concurrently; any failure cancels the rest."""
        semaphore = asyncio.Semaphore(self.settings.max_concurrent)

        async def extract_one(doc: Document) -> tuple[ParsedResponse, list[str]]:
            async with semaphore:
                output = await self._extract(
                    [doc], instructions, tracker, label=doc.filename, document=doc.filename
                )
                self.logger.document_done(
                    doc.filename, len(output[0].found_fields), len(output[0].issues)
                )
                return output

        tasks = [asyncio.create_task(extract_one(doc)) for doc in documents]
        try:
            outputs = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        # Merge in document order so ties resolve the same way every run
        merged = ParsedResponse()
        truncated: list[str] = []
        for parsed, cut in outputs:
            merged.fields.extend(parsed.fields)
            merged.issues.extend(parsed.issues)
            truncated.extend(cut)
        return merged, truncated
