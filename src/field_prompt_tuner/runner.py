"""
field-prompt-tuner CLI Runner

Optimizes the extraction prompts of fields that fall short of the target
accuracy in a set of previously measured results.

Usage:
    python -m field_prompt_tuner.runner --accuracy-data accuracy.json --documents-dir docs/
    python -m field_prompt_tuner.runner --accuracy-data accuracy.json --documents-dir docs/ \\
        --fields effective_date,counter_party --max-iterations 3 --deterministic
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from functools import partial
from pathlib import Path

from dotenv import load_dotenv

from field_prompt_tuner.accuracy_data import load_accuracy_data
from field_prompt_tuner.comparison.llm_judge import LLMSemanticJudge
from field_prompt_tuner.domain.entities import FieldResult
from field_prompt_tuner.infrastructure.documents import TextDocumentStore
from field_prompt_tuner.infrastructure.extraction import LLMDocumentExtractor
from field_prompt_tuner.infrastructure.model_clients import create_client
from field_prompt_tuner.infrastructure.prompt_generation import LLMPromptGenerator
from field_prompt_tuner.optimizer_config import OptimizerConfig, load_config
from field_prompt_tuner.use_cases.failure_analysis import FailureAnalyzer
from field_prompt_tuner.use_cases.field_optimization import OptimizationServices
from field_prompt_tuner.use_cases.health_check import run_health_check
from field_prompt_tuner.use_cases.optimization_run import (
    report_to_dataframe,
    report_to_dict,
    run_optimization,
)
from field_prompt_tuner.use_cases.preparation import NoComparisonDataError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="field-prompt-tuner: Optimize document field extraction prompts",
    )
    parser.add_argument(
        "--accuracy-data",
        required=True,
        help="Path to the accuracy data JSON file",
    )
    parser.add_argument(
        "--documents-dir",
        required=True,
        help="Directory holding one <doc_id>.txt file per document",
    )
    parser.add_argument(
        "--fields",
        default=None,
        help="Comma-separated field keys to optimize (default: every field below target)",
    )
    parser.add_argument("--test-model", default=None, help="Model used for extraction")
    parser.add_argument("--prompt-model", default=None, help="Model used to write prompts")
    parser.add_argument("--judge-model", default=None, help="Model used for llm-judge comparisons")
    parser.add_argument("--max-docs", type=int, default=None, help="Maximum documents to sample")
    parser.add_argument("--max-iterations", type=int, default=None, help="Maximum iterations per field")
    parser.add_argument("--holdout-ratio", type=float, default=None, help="Fraction of documents held out")
    parser.add_argument(
        "--deterministic",
        action="store_true",
        help="Compare llm-judge fields with near-exact matching while optimizing",
    )
    parser.add_argument(
        "--no-analysis",
        action="store_true",
        help="Skip document failure analysis before rewrites",
    )
    parser.add_argument(
        "--skip-health-check",
        action="store_true",
        help="Do not ping the models before starting",
    )
    parser.add_argument(
        "--output-dir",
        default="results",
        help="Directory for output files (default: results)",
    )
    return parser.parse_args(argv)


def apply_overrides(config: OptimizerConfig, args: argparse.Namespace) -> OptimizerConfig:
    """Return a copy of config with command-line overrides applied"""
    models = dataclasses.replace(
        config.models,
        test_model=args.test_model or config.models.test_model,
        prompt_model=args.prompt_model or config.models.prompt_model,
        judge_model=args.judge_model or config.models.judge_model,
    )
    sampling = dataclasses.replace(
        config.sampling,
        max_docs=args.max_docs if args.max_docs is not None else config.sampling.max_docs,
        holdout_ratio=args.holdout_ratio if args.holdout_ratio is not None else config.sampling.holdout_ratio,
    )
    iteration = dataclasses.replace(
        config.iteration,
        max_iterations=(
            args.max_iterations if args.max_iterations is not None else config.iteration.max_iterations
        ),
        deterministic_compare=args.deterministic or config.iteration.deterministic_compare,
        enable_failure_analysis=config.iteration.enable_failure_analysis and not args.no_analysis,
    )
    return dataclasses.replace(config, models=models, sampling=sampling, iteration=iteration)


def build_services(config: OptimizerConfig, store: TextDocumentStore, field_names: dict[str, str]) -> OptimizationServices:
    """Wire the model-backed collaborators"""
    make_client = partial(create_client, config=config)
    analyzer = None
    if config.iteration.enable_failure_analysis:
        analyzer = FailureAnalyzer(
            make_client(config.models.prompt_model),
            store.load_text,
            concurrency=config.concurrency.analysis_concurrency,
        )
    return OptimizationServices(
        extractor=LLMDocumentExtractor(make_client(config.models.test_model), store, field_names),
        prompt_generator=LLMPromptGenerator(make_client(config.models.prompt_model)),
        judge=LLMSemanticJudge(make_client(config.models.judge_model), store.load_text),
        analyzer=analyzer,
    )


def _print_field(result: FieldResult, index: int) -> None:
    status = "improved" if result.improved else "kept original"
    if result.error:
        status = f"failed ({result.error[:60]})"
    print(
        f"  [{index + 1}] {result.field_name}: "
        f"{result.initial_accuracy * 100:.1f}% -> {result.final_accuracy * 100:.1f}% "
        f"in {result.iteration_count} iteration(s), {status}"
    )


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)

    config = apply_overrides(load_config(), args)
    logging.basicConfig(
        level=config.logging.effective_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"\n=== Loading accuracy data: {args.accuracy_data} ===\n")
    accuracy_data = load_accuracy_data(args.accuracy_data)
    store = TextDocumentStore(args.documents_dir)
    field_keys = [f.strip() for f in args.fields.split(",") if f.strip()] if args.fields else None

    print(f"  Template: {accuracy_data.template_key}")
    print(f"  Fields: {len(accuracy_data.fields)}")
    print(f"  Documents: {len(accuracy_data.results)}")
    print(f"  Test model: {config.models.test_model}")
    print(f"  Prompt model: {config.models.prompt_model}")
    print(f"  Judge model: {config.models.judge_model}")
    print(f"  Max docs: {config.sampling.max_docs} | Max iterations: {config.iteration.max_iterations}")
    print()

    if not args.skip_health_check:
        required = [config.models.test_model, config.models.prompt_model, config.models.judge_model]
        available, _ = run_health_check(required, partial(create_client, config=config))
        missing = [m for m in dict.fromkeys(required) if m not in available]
        if missing:
            print(f"ERROR: Models unavailable: {', '.join(missing)}. Exiting.")
            sys.exit(1)

    field_names = {f.key: f.name for f in accuracy_data.fields}
    services = build_services(config, store, field_names)

    print("=== Optimizing ===\n")
    try:
        report = run_optimization(
            accuracy_data,
            services,
            config,
            field_keys=field_keys,
            on_field_complete=_print_field,
        )
    except NoComparisonDataError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if not report.results:
        print("  No fields need optimization.")

    summary_df = report_to_dataframe(report)

    print("\n=== Summary ===\n")
    print(f"  {'Field':<40} {'Before':>7} {'After':>7} {'Iter':>5} {'Improved':>9}")
    print(f"  {'-'*40} {'-'*7} {'-'*7} {'-'*5} {'-'*9}")
    for _, row in summary_df.iterrows():
        print(
            f"  {row['field_name']:<40} "
            f"{row['initial_accuracy']:>7.3f} "
            f"{row['final_accuracy']:>7.3f} "
            f"{row['iteration_count']:>5} "
            f"{'yes' if row['improved'] else 'no':>9}"
        )
    print()
    print(f"  Train docs: {len(report.train_doc_ids)} | Holdout docs: {len(report.holdout_doc_ids)}")
    print(f"  Time: {report.timing.actual_time_ms / 1000:.1f}s (estimated {report.timing.estimated_time_ms / 1000:.0f}s)")
    print()

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    results_path = output_dir / f"field_results_{report.run_id}.csv"
    report_path = output_dir / f"run_report_{report.run_id}.json"

    summary_df.to_csv(results_path, index=False)
    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(report_to_dict(report), f, ensure_ascii=False, indent=2)

    print("=== Output ===\n")
    print(f"  Field results: {results_path}")
    print(f"  Run report:    {report_path}")
    print()


if __name__ == "__main__":
    main()
