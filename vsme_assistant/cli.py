"""CLI entrypoint for the VSME extraction assistant."""

import argparse
import asyncio
import json
import logging
import os
import sys
import warnings
from pathlib import Path

# Suppress LiteLLM's direct prints (must be before import)
os.environ["LITELLM_LOG"] = "ERROR"

# Suppress noisy warnings before any imports
warnings.filterwarnings("ignore", message="Pydantic serializer warnings")
warnings.filterwarnings("ignore", category=UserWarning, module="pydantic")
warnings.filterwarnings("ignore", category=ResourceWarning)

# Suppress noisy loggers (HTTP clients, LiteLLM internals)
for logger_name in ["httpx", "httpcore", "litellm", "LiteLLM", "asyncio"]:
    logging.getLogger(logger_name).setLevel(logging.ERROR)

from dotenv import load_dotenv  # noqa: E402 - must be after logging config

# Load environment variables (before config reads them)
load_dotenv()

from vsme_assistant.core.config import (  # noqa: E402
    API_KEY_ENV_VAR,
    BACKEND,
    LOCAL_MODEL,
    LOCAL_URL,
    REMOTE_MODEL,
    AnalysisSettings,
)


def _print_rejections(rejections) -> None:
    for rejection in rejections:
        print(f"  [SKIPPED] {rejection.filename}: {rejection.reason}")


def _print_progress(progress) -> None:
    if progress.fraction is not None:
        print(f"\r  {progress.status}: {progress.fraction:.0%}", end="", flush=True)
    else:
        print(f"\n  {progress.status}", end="", flush=True)


def estimate(paths: list[str], model: str) -> dict | None:
    """Print the pre-flight cost band for a set of files.

    Uses file sizes only; nothing is parsed and no credentials are needed.
    """
    from vsme_assistant.core.cost_estimator import estimate_cost
    from vsme_assistant.core.document_reader import validate_file
    from vsme_assistant.core.errors import UnsupportedDocumentError
    from vsme_assistant.pydantic_models.documents import DocumentRejection
    from vsme_assistant.pydantic_models.form_schema import VSME_CORE_FIELDS

    sizes = []
    rejections = []
    for path in paths:
        try:
            sizes.append(validate_file(path).stat().st_size)
        except UnsupportedDocumentError as e:
            rejections.append(DocumentRejection(filename=e.filename, reason=e.reason))
    _print_rejections(rejections)
    if not sizes:
        print("Error: no supported documents")
        return None

    result = estimate_cost(model, sizes, field_count=len(VSME_CORE_FIELDS))
    print(f"\n{'='*50}")
    print(f"Cost estimate: {len(sizes)} document(s), model {model}")
    print(f"{'='*50}")
    print(f"  Estimated tokens: {result.estimated_tokens:,}")
    print(f"  Cost range: ${result.min_cost:.4f} - ${result.max_cost:.4f}")
    return result.to_dict()


async def analyze(
    paths: list[str],
    backend: str = BACKEND,
    model: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
    instructions: str | None = None,
    per_document: bool = False,
    max_concurrent: int = 3,
    output_dir: str = "outputs",
    form_path: str | None = None,
    verify_key: bool = False,
    verbose: bool = False,
) -> dict | None:
    """Run an analysis and write the result.

    Args:
        paths: Documents to analyze.
        backend: "remote" or "local".
        model: Model name (remote model id, or local display name).
        api_key: Remote API key. Defaults to the environment.
        base_url: Local server URL.
        instructions: Free-text context for the model.
        per_document: Extract each document in its own call.
        max_concurrent: Max concurrent calls in per-document mode.
        output_dir: Directory for output files.
        form_path: JSON form state to merge auto-accepted values into.
        verify_key: Check the remote API key with the provider before the run.
        verbose: Verbose output.

    Returns:
        Result dict, or None on failure.
    """
    # Import here to keep --help fast
    from vsme_assistant.analyzer import DocumentAnalyzer
    from vsme_assistant.backends import BackendKind, BackendSession, create_backend
    from vsme_assistant.core.document_reader import load_documents
    from vsme_assistant.core.errors import VSMEAssistantError, document_error
    from vsme_assistant.review import JsonFormState, ReviewSession

    kind = BackendKind(backend)
    if kind == BackendKind.REMOTE:
        api_key = api_key or os.environ.get(API_KEY_ENV_VAR)
        if not api_key:
            print(f"Error: {API_KEY_ENV_VAR} not set")
            print(f"Set it in .env or export {API_KEY_ENV_VAR}=...")
            return None
        session = BackendSession(kind, model or REMOTE_MODEL, api_key=api_key)
        backend_kwargs = {"verify_key": verify_key}
    else:
        session = BackendSession(kind, model or LOCAL_MODEL, base_url=base_url or LOCAL_URL)
        backend_kwargs = {"on_progress": _print_progress}

    documents, rejections = load_documents(paths)
    _print_rejections(rejections)

    output_dir = Path(output_dir)
    json_dir = output_dir / "json"
    logs_dir = output_dir / "logs"
    json_dir.mkdir(parents=True, exist_ok=True)
    logs_dir.mkdir(parents=True, exist_ok=True)

    generation_backend = create_backend(session, **backend_kwargs)
    analyzer = DocumentAnalyzer(
        generation_backend,
        settings=AnalysisSettings(per_document=per_document, max_concurrent=max_concurrent),
        verbose=verbose,
        log_dir=logs_dir,
    )
    if not analyzer.can_analyze(documents):
        print("Error: Please upload at least one document with text content.")
        return None

    print(f"\n{'='*50}")
    print(f"Analyzing: {len(documents)} document(s)")
    print(f"{'='*50}")
    print(f"  Backend: {kind}")
    print(f"  Model: {generation_backend.model_id}")
    print(f"  Mode: {'per-document' if per_document else 'combined'}")
    if kind == BackendKind.REMOTE:
        band = analyzer.estimate(documents)
        print(f"  Estimated cost: ${band.min_cost:.4f} - ${band.max_cost:.4f}")
    print()

    try:
        result = await analyzer.analyze(documents, instructions=instructions)
    except VSMEAssistantError as e:
        print(f"\n[ERROR] {e.user_message}")
        return None
    finally:
        await generation_backend.disconnect()

    for rejection in rejections:
        analyzer.errors.add(document_error(rejection.reason, phase="load", filename=rejection.filename))
    result_dict = result.to_dict()
    result_dict["diagnostics"] = analyzer.errors.to_dict()
    stem = Path(documents[0].filename).stem if len(documents) == 1 else "analysis"
    output_file = json_dir / f"{stem}.json"
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(result_dict, f, indent=2, ensure_ascii=False)
    print(f"\n[OUTPUT] {output_file}")

    if form_path:
        outcome = ReviewSession(result).apply_to(JsonFormState(form_path))
        print(f"[FORM] {form_path}: {len(outcome.auto_applied)} high-confidence field(s) applied")
        if result.fields_requiring_verification:
            print(f"  {len(result.fields_requiring_verification)} field(s) need review before use")

    return result_dict


def models(total_ram_gb: float | None = None, available_ram_gb: float | None = None) -> None:
    """Print the model catalog, highlighting the tier that fits this machine."""
    from vsme_assistant.backends.model_catalog import (
        RECOMMENDED_MODELS,
        REMOTE_MODELS,
        detect_memory_gb,
        recommend_model_tier,
    )

    if total_ram_gb is None:
        detected = detect_memory_gb()
        if detected is not None:
            total_ram_gb, detected_available = detected
            available_ram_gb = available_ram_gb if available_ram_gb is not None else detected_available
            print(f"Detected memory: {total_ram_gb:.1f} GB total, {available_ram_gb:.1f} GB available\n")

    recommended = None
    if total_ram_gb is not None:
        recommended = recommend_model_tier(total_ram_gb, available_ram_gb or 0.0)

    print("Remote models:")
    for info in REMOTE_MODELS.values():
        print(f"  {info.model_id:<22} {info.context_window:>7,} ctx  {info.description}")

    print("\nLocal models:")
    for tier, entries in RECOMMENDED_MODELS.items():
        marker = "  <- recommended" if tier == recommended else ""
        print(f"  [{tier}]{marker}")
        for entry in entries:
            print(f"    {entry.display_name:<18} {entry.registry_name:<18} {entry.size_gb:>4.1f} GB  {entry.description}")


def main():
    parser = argparse.ArgumentParser(
        description="VSME Sustainability Report Extraction Assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vsme-extract estimate report.pdf energy.xlsx
  vsme-extract analyze report.pdf energy.xlsx --form form.json
  vsme-extract analyze --backend local --model "Qwen 2.5 7B" report.pdf
  vsme-extract models --ram 16 --available-ram 9
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_estimate = subparsers.add_parser("estimate", help="Pre-flight cost estimate")
    p_estimate.add_argument("files", nargs="+", help="Documents to analyze")
    p_estimate.add_argument(
        "-m", "--model",
        default=REMOTE_MODEL,
        help=f"Remote model to price (default: {REMOTE_MODEL})",
    )

    p_analyze = subparsers.add_parser("analyze", help="Extract form values from documents")
    p_analyze.add_argument("files", nargs="+", help="Documents to analyze")
    p_analyze.add_argument(
        "-b", "--backend",
        choices=["remote", "local"],
        default=BACKEND,
        help=f"Generation backend (default: {BACKEND})",
    )
    p_analyze.add_argument("-m", "--model", default=None, help="Model name")
    p_analyze.add_argument("--api-key", default=None, help=f"Remote API key (default: ${API_KEY_ENV_VAR})")
    p_analyze.add_argument("--url", default=None, help=f"Local server URL (default: {LOCAL_URL})")
    p_analyze.add_argument("-i", "--instructions", default=None, help="Extra context for the model")
    p_analyze.add_argument(
        "--per-document",
        action="store_true",
        help="Extract each document in its own call and merge the results",
    )
    p_analyze.add_argument(
        "-c", "--concurrent",
        type=int,
        default=3,
        help="Max concurrent calls in per-document mode (default: 3)",
    )
    p_analyze.add_argument(
        "-o", "--output",
        default="outputs",
        help="Output directory (default: outputs)",
    )
    p_analyze.add_argument(
        "--form",
        default=None,
        help="JSON form state to merge high-confidence values into",
    )
    p_analyze.add_argument(
        "--verify-key",
        action="store_true",
        help="Check the remote API key with the provider before analyzing",
    )
    p_analyze.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with DEBUG level logging",
    )

    p_models = subparsers.add_parser("models", help="List models and recommend a local tier")
    p_models.add_argument("--ram", type=float, default=None, help="Total RAM in GB (default: detected)")
    p_models.add_argument("--available-ram", type=float, default=None, help="Available RAM in GB")

    args = parser.parse_args()

    if args.command == "estimate":
        ok = estimate(args.files, args.model) is not None
    elif args.command == "analyze":
        ok = asyncio.run(analyze(
            paths=args.files,
            backend=args.backend,
            model=args.model,
            api_key=args.api_key,
            base_url=args.url,
            instructions=args.instructions,
            per_document=args.per_document,
            max_concurrent=args.concurrent,
            output_dir=args.output,
            form_path=args.form,
            verify_key=args.verify_key,
            verbose=args.verbose,
        )) is not None
    else:
        models(args.ram, args.available_ram)
        ok = True

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
