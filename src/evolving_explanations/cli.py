"""Command-line driver: evaluate a model on a dataset with the EE algorithm.

Usage:
    evolving-explanations --dataset-path data/arith.jsonl --model gpt-4o-mini --limit 20
    python -m evolving_explanations --dataset-path data/arith.jsonl --generations 4 --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Sequence

import structlog

from evolving_explanations.config import EEConfig, ModelConfig
from evolving_explanations.datasets import get_dataset
from evolving_explanations.llm.client import CompletionClient
from evolving_explanations.log_config import configure_logging
from evolving_explanations.persistence.completions import CompletionStore, SQLiteCompletionStore
from evolving_explanations.persistence.db import DatabaseManager
from evolving_explanations.persistence.results import SQLiteResultStore
from evolving_explanations.runner import EvaluationRunner
from evolving_explanations.settings import Settings

logger = structlog.get_logger()


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="evolving-explanations",
        description="Evaluate a model with evolutionary explanation refinement",
    )
    parser.add_argument("--dataset", default=None, help="Dataset registry key (default: EE_DATASET or 'jsonl')")
    parser.add_argument("--dataset-path", default=None, help="Path to the dataset file")
    parser.add_argument("--provider", default=None, help="Model provider, e.g. openai, anthropic, ollama")
    parser.add_argument("--model", default=None, help="Model name")
    parser.add_argument("--limit", type=int, default=None, help="Only run the first N tests")
    parser.add_argument("--pool-size", type=int, default=None)
    parser.add_argument("--generations", type=int, default=None)
    parser.add_argument("--judgements-depth", type=int, default=None)
    parser.add_argument("--max-crossovers", type=int, default=None)
    parser.add_argument("--n-shot", type=int, default=None)
    parser.add_argument("--inner-concurrency", type=int, default=None, help="Concurrent model calls per batch")
    parser.add_argument("--concurrency", type=_positive_int, default=None, help="Tests processed at once")
    parser.add_argument("--timeout", type=float, default=None, help="Per-test timeout in seconds")
    parser.add_argument("--db-path", default=None, help="SQLite file for completions and results")
    parser.add_argument("--persist", action="store_true", help="Persist to the default repo-local database")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--log-format", default=None, choices=["console", "json"])
    parser.add_argument("--json", action="store_true", help="Print the run report as JSON")
    return parser


def build_config(args: argparse.Namespace) -> EEConfig:
    overrides = {
        "pool_size": args.pool_size,
        "generations": args.generations,
        "judgements_depth": args.judgements_depth,
        "max_crossovers": args.max_crossovers,
        "n_shot": args.n_shot,
        "inner_concurrency": args.inner_concurrency,
    }
    return EEConfig(**{k: v for k, v in overrides.items() if v is not None})


async def run(args: argparse.Namespace, settings: Settings) -> int:
    dataset_path = args.dataset_path or settings.dataset_path
    if not dataset_path:
        logger.error("dataset_path_missing")
        return 2

    config = build_config(args)
    model = ModelConfig(
        provider=args.provider or settings.provider,
        model=args.model or settings.model,
        api_key=settings.api_key,
    )
    dataset = get_dataset(args.dataset or settings.dataset, path=dataset_path)
    tests = dataset.tests()
    if args.limit is not None:
        tests = tests[: args.limit]

    db: DatabaseManager | None = None
    store: CompletionStore | None = None
    if args.db_path or settings.db_path or args.persist:
        db = DatabaseManager(args.db_path or settings.db_path)
        await db.initialize()
        store = SQLiteCompletionStore(db)

    try:
        client = CompletionClient(model, min_request_interval_s=settings.min_request_interval_s)
        runner = EvaluationRunner(config, model, dataset, client, store=store)
        report = await runner.run(
            tests,
            outer_concurrency=args.concurrency if args.concurrency is not None else settings.outer_concurrency,
            test_timeout_s=args.timeout if args.timeout is not None else settings.test_timeout_s,
        )
        if db is not None:
            await SQLiteResultStore(db).save_run(report, config=config.model_dump())
    finally:
        if db is not None:
            await db.close()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        for line in report.result_lines():
            print(line)

    if tests and not report.outcomes:
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    configure_logging(args.log_level or settings.log_level, args.log_format or settings.log_format)
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
