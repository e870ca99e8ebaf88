"""CLI entrypoints for kinteg commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError
from .errors import AlreadyHandled, GateClosed, KintegError
from .logging import configure_logging
from .models import IntegrationResult, MarkerKind, ReportOutcome
from .orchestrator import IntegrateOutcome, Orchestrator
from .prompt import ConsolePrompt, Prompt, ScriptedPrompt

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_ALREADY_HANDLED = 3
EXIT_GATE_CLOSED = 4
EXIT_NOT_AVAILABLE = 5


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_description_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "description",
        nargs="?",
        default=None,
        help="Tree description (defaults to `git describe` of the integration branch).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kinteg",
        description="Build, publish and triage a kernel integration branch.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write timestamped logs to this file.",
    )
    parser.add_argument(
        "-C",
        "--repo",
        default=".",
        help="Path to the working repository (defaults to current directory).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Topic list to use instead of searching the default locations.",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Settings file to use instead of searching for .kinteg.yml.",
    )
    answers = parser.add_mutually_exclusive_group()
    answers.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Answer yes to every confirmation prompt.",
    )
    answers.add_argument(
        "--no-input",
        action="store_true",
        help="Never prompt; take the default answer for every question.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    integrate_parser = subparsers.add_parser(
        "integrate",
        help="Reconcile remotes, rebuild the integration branch and push it.",
    )
    _add_verbose_option(integrate_parser, suppress_default=True)
    integrate_parser.add_argument(
        "--no-push",
        action="store_true",
        help="Build the integration branch without publishing it.",
    )

    reconcile_parser = subparsers.add_parser(
        "reconcile",
        help="Only bring the configured remotes in line with the topic list.",
    )
    _add_verbose_option(reconcile_parser, suppress_default=True)

    report_parser = subparsers.add_parser(
        "report",
        help="Fetch the build report and blame its errors on topic branches.",
    )
    _add_verbose_option(report_parser, suppress_default=True)
    _add_description_argument(report_parser)

    test_parser = subparsers.add_parser(
        "test",
        help="Start the test framework for a reported, unblamed tree.",
    )
    _add_verbose_option(test_parser, suppress_default=True)
    _add_description_argument(test_parser)

    describe_parser = subparsers.add_parser(
        "describe",
        help="Print the tree description of the integration branch.",
    )
    _add_verbose_option(describe_parser, suppress_default=True)

    status_parser = subparsers.add_parser(
        "status",
        help="Show which run markers exist for a tree description.",
    )
    _add_verbose_option(status_parser, suppress_default=True)
    _add_description_argument(status_parser)

    return parser


def _select_prompt(args: argparse.Namespace) -> Prompt:
    if args.yes:
        return ScriptedPrompt(fallback=True)
    if args.no_input:
        return ScriptedPrompt()
    return ConsolePrompt()


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for kinteg commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    orchestrator = Orchestrator(
        args.repo,
        prompt=_select_prompt(args),
        topics_path=args.config,
        settings_path=args.settings,
    )

    try:
        if args.command == "integrate":
            outcome = orchestrator.run_integrate(push=not bool(getattr(args, "no_push", False)))
            _print_integrate(outcome)
        elif args.command == "reconcile":
            result = orchestrator.run_reconcile()
            print(
                f"added={result.added} removed={result.removed} "
                f"updated={result.updated} baseline_changed={str(result.baseline_changed).lower()}"
            )
            if result.failures:
                parser.exit(EXIT_FAILURE, f"Fetching failed for: {', '.join(result.failures)}\n")
        elif args.command == "report":
            report = orchestrator.run_report(args.description)
            if not report.available:
                parser.exit(
                    EXIT_NOT_AVAILABLE,
                    f"No report available for {report.description} yet\n",
                )
            _print_report(report)
        elif args.command == "test":
            returncode = orchestrator.run_test(args.description)
            print(f"Test framework exited with status {returncode}")
        elif args.command == "describe":
            print(orchestrator.describe())
        elif args.command == "status":
            markers = orchestrator.status(args.description)
            for kind in MarkerKind:
                state = "yes" if markers[kind] else "no"
                print(f"{kind.name.lower():<9} {state}")
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(EXIT_FAILURE, "Unknown command\n")
    except AlreadyHandled as exc:
        parser.exit(EXIT_ALREADY_HANDLED, f"Nothing to do for {exc.description}: {exc.reason}\n")
    except GateClosed as exc:
        parser.exit(EXIT_GATE_CLOSED, f"Not testing {exc.description}: {exc.reason}\n")
    except ConfigError as exc:
        parser.exit(EXIT_FAILURE, f"{exc}\n")
    except KintegError as exc:
        parser.exit(
            EXIT_FAILURE,
            f"kinteg {args.command} failed: {exc}\nRun with --verbose for more details.\n",
        )


def _print_integrate(outcome: IntegrateOutcome) -> None:
    result = outcome.reconciliation
    print(
        f"Remotes: {result.added} added, {result.removed} removed, "
        f"{result.updated} updated, baseline {'changed' if result.baseline_changed else 'unchanged'}"
    )
    integration = outcome.integration
    if integration is None:
        print("Integration branch not rebuilt")
        return
    _print_integration(integration)
    if outcome.description:
        print(f"Tree description: {outcome.description}")
    print("Pushed" if outcome.published else "Not pushed")


def _print_integration(integration: IntegrationResult) -> None:
    print(f"Built {integration.branch} on {integration.base_tag}")
    if integration.backup_branch:
        print(f"Previous integration branch kept as {integration.backup_branch}")
    print(f"Merged {len(integration.merged)} topics: {', '.join(integration.merged) or '-'}")
    if integration.conflicted:
        print(f"Resolved conflicts in: {', '.join(integration.conflicted)}")


def _print_report(report: ReportOutcome) -> None:
    for attribution in report.attributions:
        commit = attribution.commit
        print(f"{attribution.topic.ref}: {commit.sha[:12]} {commit.subject}")
        print(f"    Author: {commit.author}  Date: {commit.date}")
        print(f"    {attribution.record.message}")
    print(
        f"{report.description}: {len(report.records)} errors, "
        f"{len(report.attributions)} attributed, {report.ignored} from baseline, "
        f"{report.unattributed} unattributed"
    )
    if report.blamed:
        print(f"Marked {report.description} as blamed")


if __name__ == "__main__":
    main(sys.argv[1:])
