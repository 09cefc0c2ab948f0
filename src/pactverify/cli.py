"""Pactverify CLI: verify a provider against pact files."""

import argparse
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path


def _configure_logging(quiet: bool, verbose: bool) -> None:
    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _config_overrides(args) -> dict:
    """CLI options that were given; anything left unset falls back to PACT_* env vars."""
    overrides = {
        "request_timeout": args.timeout,
        "max_workers": args.workers,
    }
    if args.filter_consumer:
        overrides["filter_consumers"] = list(args.filter_consumer)
    if args.filter_description is not None:
        overrides["filter_description"] = args.filter_description
    if args.filter_state is not None:
        overrides["filter_provider_state"] = args.filter_state
    if args.provider_version is not None:
        overrides["provider_version"] = args.provider_version
    for flag in ("fail_fast", "show_stacktrace", "show_full_diff", "allow_unexpected_keys", "normalize_whitespace"):
        if getattr(args, flag):
            overrides[flag] = True
    return overrides


def main():
    """Main CLI entry point for pactverify commands."""
    try:
        pactverify_version = get_version("pactverify")
    except PackageNotFoundError:
        pactverify_version = "dev"

    parser = argparse.ArgumentParser(
        prog="pactverify",
        description="Pactverify: provider verification of consumer-driven contracts"
    )
    parser.add_argument("--version", action="version", version=f"pactverify {pactverify_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )
    parent_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every verification step."
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # verify command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify a running provider against one or more pact files",
        parents=[parent_parser]
    )
    verify_parser.add_argument(
        "pacts",
        type=Path,
        nargs="+",
        help="Path(s) to pact JSON files"
    )
    verify_parser.add_argument(
        "--provider-base-url",
        default=None,
        help="Base URL requests are replayed against (e.g. http://localhost:8080)"
    )
    verify_parser.add_argument(
        "--provider-name",
        default=None,
        help="Provider name (defaults to the provider named in each pact)"
    )
    verify_parser.add_argument(
        "--provider-module",
        default=None,
        help="Import path of a module whose @provider_method functions produce actual messages/responses"
    )
    verify_parser.add_argument(
        "--provider-methods-only",
        action="store_true",
        help="Verify request/response interactions via provider methods instead of HTTP"
    )
    verify_parser.add_argument(
        "--state-change-url",
        default=None,
        help="URL that receives provider state setup (and teardown) requests"
    )
    verify_parser.add_argument(
        "--state-change-as-query",
        action="store_true",
        help="Send state change parameters as query parameters instead of a JSON body"
    )
    verify_parser.add_argument(
        "--state-change-teardown",
        action="store_true",
        help="Send teardown state change requests after each interaction"
    )
    verify_parser.add_argument(
        "--filter-consumer",
        action="append",
        default=None,
        help="Only verify pacts from this consumer (repeatable)"
    )
    verify_parser.add_argument(
        "--filter-description",
        default=None,
        help="Only verify interactions whose description matches this regex"
    )
    verify_parser.add_argument(
        "--filter-state",
        default=None,
        help="Only verify interactions with a provider state matching this regex (empty: no state)"
    )
    verify_parser.add_argument(
        "--provider-version",
        default=None,
        help="Provider version recorded with published results"
    )
    verify_parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of interactions verified concurrently (default: 1)"
    )
    verify_parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Request timeout in seconds (default: 30)"
    )
    verify_parser.add_argument("--fail-fast", action="store_true", help="Stop after the first failing interaction")
    verify_parser.add_argument("--show-stacktrace", action="store_true", help="Include stack traces in failures")
    verify_parser.add_argument("--show-full-diff", action="store_true", help="Include a full body diff in failures")
    verify_parser.add_argument(
        "--allow-unexpected-keys",
        action="store_true",
        help="Accept keys in actual bodies that the pact does not mention"
    )
    verify_parser.add_argument(
        "--normalize-whitespace",
        action="store_true",
        help="Collapse whitespace before comparing text bodies"
    )
    verify_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the JSON verification report to this path"
    )

    # inspect command
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Load pact files and summarise their interactions",
        parents=[parent_parser]
    )
    inspect_parser.add_argument(
        "pacts",
        type=Path,
        nargs="+",
        help="Path(s) to pact JSON files"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    _configure_logging(args.quiet, args.verbose)

    if args.command == "verify":
        # Lazy import: the verifier (and httpx) is only loaded for verify
        from .api import build_report, load_pact
        from .codes import VerificationType
        from .config import ConsumerInfo, ProviderInfo, VerifierConfig
        from .kernel.provider_methods import ProviderMethodRegistry
        from .kernel.verifier import ProviderVerifier
        from ._internal.canonical_json import canonical_dumps
        from ._internal.reporting.reporter import LoggingReporter

        try:
            config = VerifierConfig.from_env(**_config_overrides(args))
            registry = ProviderMethodRegistry()
            if args.provider_module:
                import importlib
                registry.scan_module(importlib.import_module(args.provider_module))
            if not args.provider_base_url and not args.provider_module:
                print("Error: Must provide --provider-base-url, --provider-module, or both.", file=sys.stderr)
                sys.exit(1)

            verifier = ProviderVerifier(
                config=config,
                reporters=[LoggingReporter()],
                provider_methods=registry,
            )
            mode = VerificationType.PROVIDER_METHOD if args.provider_methods_only \
                else VerificationType.REQUEST_RESPONSE

            reports = []
            for pact_path in args.pacts:
                pact = load_pact(pact_path)
                provider = ProviderInfo(
                    name=args.provider_name or pact.provider,
                    base_url=args.provider_base_url,
                    state_change_url=args.state_change_url,
                    state_change_uses_body=not args.state_change_as_query,
                    state_change_teardown=args.state_change_teardown,
                    verification_type=mode,
                )
                consumer = ConsumerInfo(name=pact.consumer, pact_source=str(pact_path))
                run = verifier.verify_pact(pact, provider, consumer)
                reports.append(build_report(run, provider.name, consumer.name, config.provider_version))

            ok = all(report.ok for report in reports)
            if args.output is not None:
                args.output.parent.mkdir(parents=True, exist_ok=True)
                payload = [report.model_dump() for report in reports]
                args.output.write_text(canonical_dumps(payload) + "\n", encoding="utf-8")

            if not args.quiet:
                print(f"[{'OK' if ok else 'FAILED'}] Verification complete")
                if args.output is not None:
                    print(f"  Report: {args.output}")
                for report in reports:
                    summary = report.summary
                    print(f"  {report.consumer} -> {report.provider}: "
                          f"{summary.get('passed', 0)}/{summary.get('total', 0)} passed"
                          + (f", {summary['skipped']} skipped" if summary.get("skipped") else ""))
                    for interaction in report.interactions:
                        if interaction.result != "ok":
                            print(f"    [{interaction.result.upper()}] {interaction.description}")
                print(f"  Status: {'OK' if ok else 'FAILED'}")
            if not ok:
                sys.exit(1)
        except FileNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except ImportError as e:
            print(f"Error: Cannot import provider module: {e}", file=sys.stderr)
            sys.exit(1)
        except Exception as e:
            print(f"Unexpected error: {e}", file=sys.stderr)
            import traceback
            traceback.print_exc()
            sys.exit(1)
    elif args.command == "inspect":
        from .api import load_pact
        from .kernel.interaction import MessageInteraction

        try:
            for pact_path in args.pacts:
                pact = load_pact(pact_path)
                if not args.quiet:
                    print(f"[OK] {pact_path}")
                    print(f"  Consumer: {pact.consumer}")
                    print(f"  Provider: {pact.provider}")
                    print(f"  Pact version: {pact.pact_version()}")
                    print(f"  Interactions: {len(pact.interactions)}")
                    for interaction in pact.interactions:
                        kind = "message" if isinstance(interaction, MessageInteraction) else "http"
                        states = ", ".join(interaction.provider_state_names())
                        print(f"    [{kind}] {interaction.description}" + (f" (given {states})" if states else ""))
        except (FileNotFoundError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
