"""Main entry point for the ACE fraud detection engine."""

import argparse
import json
import logging
import sys
from pathlib import Path

from ace_fraud.config import get_engine_config
from ace_fraud.database.models import AnalysisMode, Recommendation, parse_transaction
from ace_fraud.database.sample_data import initialize_sample_data
from ace_fraud.errors import FraudDetectionError
from ace_fraud.experiment import load_dataset
from ace_fraud.service import FraudDetectionService

logger = logging.getLogger(__name__)

DECISION_COLORS = {
    Recommendation.DECLINE: "\033[91m",
    Recommendation.APPROVE: "\033[92m",
}
RESET = "\033[0m"


def print_analysis_result(result, verbose: bool = False):
    """Print analysis result in a formatted way."""
    print("\n" + "=" * 60)
    print(f"FRAUD ANALYSIS RESULT [{result.mode.value}]")
    print("=" * 60)

    print(f"\nAnalysis ID: {result.analysis_id}")
    print(f"User ID: {result.transaction.user_id}")
    print(f"Amount: ${result.transaction.amount:,.2f} at {result.transaction.merchant}")

    color = DECISION_COLORS.get(result.decision, "")
    print(f"\n{'─' * 40}")
    print(f"DECISION: {color}{result.decision.value}{RESET}")
    print(f"Risk Score: {result.risk_score:.2f}/100")
    print(f"Confidence: {result.confidence:.1%}")
    if result.playbook_version is not None:
        print(f"Playbook Version: {result.playbook_version}")
    print(f"{'─' * 40}")

    print(f"\nProcessing Time: {result.processing_time_seconds:.2f} seconds")

    print("\n--- Risk Breakdown ---")
    for name, entry in result.risk_breakdown.items():
        print(f"  {name:<22} score {entry.score:6.2f}  contribution {entry.contribution:.1%}")

    if verbose:
        print("\n--- Analyzer Details ---")
        for name, analysis in result.analyzer_results.items():
            print(f"\n[{name}]")
            print(f"  Recommendation: {analysis.recommendation.value}")
            print(f"  Risk Score: {analysis.risk_score:.2f}")
            print(f"  Confidence: {analysis.confidence:.1%}")
            print(f"  Reasoning: {analysis.reasoning[:200]}")
            if analysis.findings:
                print(f"  Findings: {analysis.findings[:3]}")
            if analysis.applied_bullets:
                print(f"  Playbook: {', '.join(analysis.applied_bullets)}")
            if analysis.error:
                print(f"  Error: {analysis.error}")

    if result.processing_errors:
        print("\n--- Processing Errors ---")
        for error in result.processing_errors:
            print(f"  {error}")

    print("\n--- Reasoning ---")
    print(result.reasoning)

    print("\n" + "=" * 60)


def print_experiment_results(results):
    """Print a side-by-side summary of experiment runs."""
    print("\n" + "=" * 60)
    print("EXPERIMENT RESULTS")
    print("=" * 60)
    print(f"\n{'Mode':<14}{'Problems':>10}{'Accuracy':>11}{'Playbook':>10}{'Time (s)':>10}")
    print("─" * 55)
    for result in results:
        print(
            f"{result.mode.value:<14}{result.problems_processed:>10}"
            f"{result.final_accuracy:>11.1%}{result.playbook_size:>10}{result.execution_time:>10.2f}"
        )
    print("\n" + "=" * 60)


def list_transactions(sample_data):
    print("\nAvailable Sample Transactions:")
    print("-" * 60)
    print("\nLegitimate Transactions:")
    for txn_id, txn in sample_data["legitimate_transactions"].items():
        print(f"  {txn_id}: {txn.user_id} ${txn.amount:,.2f} at {txn.merchant} ({txn.time})")
    print("\nPotentially Fraudulent Transactions:")
    for txn_id, txn in sample_data["fraudulent_transactions"].items():
        print(f"  {txn_id}: {txn.user_id} ${txn.amount:,.2f} at {txn.merchant} ({txn.time})")
        print(f"    Account age: {txn.user_age_days} days, merchant reports: {txn.merchant_fraud_reports}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ACE Multi-Agent Fraud Detection Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ace-fraud --list-transactions
  ace-fraud --transaction-id TXN101 --mode vanilla --mode offline_ace --verbose
  ace-fraud --transaction-file txn.json --mode online_ace --json
  ace-fraud --experiment --sample-size 100
  ace-fraud --experiment --dataset labeled.json --mode online_ace
        """
    )

    parser.add_argument(
        "--transaction-id",
        type=str,
        help="ID of the sample transaction to analyze",
    )
    parser.add_argument(
        "--transaction-file",
        type=str,
        help="Path to a JSON file holding one transaction",
    )
    parser.add_argument(
        "--list-transactions",
        action="store_true",
        help="List all available sample transactions",
    )
    parser.add_argument(
        "--mode",
        action="append",
        choices=[m.value for m in AnalysisMode],
        help="Analysis mode; repeat to compare several (default: all three)",
    )
    parser.add_argument(
        "--experiment",
        action="store_true",
        help="Replay a labeled dataset and compare modes",
    )
    parser.add_argument(
        "--dataset",
        type=str,
        help="Labeled dataset JSON for --experiment",
    )
    parser.add_argument(
        "--sample-size",
        type=int,
        default=60,
        help="Size of the generated dataset when --dataset is not given (default: 60)",
    )
    parser.add_argument(
        "--playbook",
        action="store_true",
        help="Show the playbook for the selected mode(s)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed analysis output",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit results as JSON",
    )
    return parser


def _print_playbook(service: FraudDetectionService, modes, as_json: bool):
    for mode in modes:
        playbook = service.get_playbook(mode)
        if as_json:
            print(json.dumps(
                {node: [b.model_dump(mode="json") for b in bullets] for node, bullets in playbook.items()},
                indent=2,
            ))
            continue
        print(f"\nPlaybook [{mode}]:")
        for node, bullets in playbook.items():
            print(f"  {node}: {len(bullets)} bullets")
            for bullet in bullets:
                print(f"    {bullet.id} ({bullet.success_rate:.0%}): {bullet.content}")


def main(argv=None):
    """Main function to run fraud detection from command line."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = get_engine_config()
    except FraudDetectionError as e:
        print(f"Configuration error: {e}")
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    sample_data = initialize_sample_data()

    if args.list_transactions:
        list_transactions(sample_data)
        return 0

    modes = args.mode or [m.value for m in AnalysisMode]

    try:
        service = FraudDetectionService(config)

        if args.playbook:
            _print_playbook(service, modes, args.json)
            return 0

        if args.experiment:
            dataset = load_dataset(args.dataset) if args.dataset else None
            results = service.run_experiment(modes, dataset=dataset, sample_size=args.sample_size)
            if args.json:
                print(json.dumps([r.model_dump(mode="json") for r in results], indent=2))
            else:
                print_experiment_results(results)
            return 0

        if args.transaction_file:
            transaction = parse_transaction(json.loads(Path(args.transaction_file).read_text()))
        elif args.transaction_id:
            transaction = sample_data["transactions"].get(args.transaction_id)
            if transaction is None:
                print(f"Error: Transaction '{args.transaction_id}' not found")
                print("Use --list-transactions to see available transactions")
                return 1
        else:
            parser.print_help()
            print("\nError: --transaction-id, --transaction-file or --experiment is required")
            return 1

        if not args.json:
            print(f"\nAnalyzing transaction for {transaction.user_id}")
            print(f"Amount: ${transaction.amount:,.2f} at {transaction.merchant}")
            print(f"Modes: {', '.join(modes)}")

        results = service.compare_modes(transaction, modes)

        if args.json:
            print(json.dumps(
                {mode.value: result.model_dump(mode="json") for mode, result in results.items()},
                indent=2,
            ))
        else:
            for result in results.values():
                print_analysis_result(result, args.verbose)

    except (FraudDetectionError, OSError, json.JSONDecodeError) as e:
        print(f"\nError: {e}")
        if args.verbose:
            logger.exception("Analysis failed")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main() or 0)
