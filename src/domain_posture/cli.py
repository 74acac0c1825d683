"""Command-line entry point.

Examples:
    domain-posture example.com
    domain-posture example.com --json > example.json
    domain-posture example.com --probe rdap
    domain-posture --list
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from tqdm import tqdm

from . import __version__
from .scanner.gate import ScanGate
from .scanner.messages import translate
from .scanner.normalization import validate_hostname
from .scanner.orchestrator import OrchestratorSettings, ScanOrchestrator
from .scanner.registry import build_default_registry
from .scanner.report import build_report, render_text
from .scanner.upstream import UpstreamClient
from .util.config import Config
from .util.errors import ScannerError
from .util.log import setup_logging
from .util.types import ExecutedProbeResult, ScanAggregate

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='domain-posture',
        description="Check the public security posture of a domain (DNS, email auth, "
                    "certificates, registration, HTTP security headers).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
SETTINGS:
  Timeouts, cache and rate limits are read from the environment or a .env
  file in the working directory (DEFAULT_TIMEOUT_MS, HTTP_TIMEOUT, DNS_TIMEOUT,
  CACHE_TTL_SECONDS, CACHE_DIR, RATE_LIMIT_MAX_SCANS, RATE_LIMIT_WINDOW_SECONDS).
        """
    )
    parser.add_argument('domain', nargs='?', help='Domain to scan')
    parser.add_argument('--json', action='store_true',
                        help='Print the scan as JSON instead of a text report')
    parser.add_argument('--probe', metavar='ID', default=None,
                        help='Run only this probe (see --list)')
    parser.add_argument('--timeout-ms', type=float, default=None,
                        help='Default per-probe timeout in milliseconds')
    parser.add_argument('--force', action='store_true',
                        help='Ignore any cached result for the domain')
    parser.add_argument('--list', action='store_true',
                        help='List the available probes and exit')
    parser.add_argument('--log-file', default=None, help='Also write logs to this file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def _print_probe_list(probes: List[dict]) -> None:
    for probe in probes:
        timeout = f"{probe['timeout_ms']} ms" if probe['timeout_ms'] else 'default'
        print(f"{probe['id']:<16} {translate(probe['label']):<22} timeout: {timeout}")
        print(f"{'':<16} {translate(probe['description'])}")


def _single_probe_aggregate(result: ExecutedProbeResult, domain: str) -> ScanAggregate:
    return ScanAggregate(
        domain=domain,
        timestamp=result.finished_at or '',
        probes=[result],
        issues=list(result.issues),
    )


def _to_json(aggregate: ScanAggregate) -> str:
    rows = {row.result.id: row.interpretation.to_dict() for row in build_report(aggregate)}
    payload = aggregate.to_dict()
    for probe in payload['probes']:
        probe['interpretation'] = rows[probe['id']]
    return json.dumps(payload, indent=2)


async def run_cli(args: argparse.Namespace, config: Config) -> int:
    async with UpstreamClient(timeout=config.http_timeout, user_agent=config.user_agent) as client:
        registry = build_default_registry(config, client=client)
        orchestrator = ScanOrchestrator(
            registry, OrchestratorSettings(default_timeout_ms=config.default_timeout_ms)
        )
        if args.timeout_ms is not None:
            orchestrator.set_default_timeout(args.timeout_ms)

        if args.list:
            _print_probe_list(orchestrator.list_probes())
            return 0

        domain = validate_hostname(args.domain)

        if args.probe:
            result = await orchestrator.run_one(args.probe, domain)
            aggregate = _single_probe_aggregate(result, domain)
        else:
            gate = ScanGate.from_config(orchestrator, config)
            show_bar = not args.json and sys.stderr.isatty()
            with tqdm(total=len(registry), desc=f"Scanning {domain}", unit='probe',
                      disable=not show_bar) as bar:
                def on_progress(snapshot: List[ExecutedProbeResult]):
                    done = sum(1 for r in snapshot if r.status.is_terminal)
                    bar.update(done - bar.n)

                aggregate = await gate.scan(domain, on_progress=on_progress, force=args.force)

    if args.json:
        print(_to_json(aggregate))
    else:
        print(render_text(aggregate))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.list and not args.domain:
        parser.error('a domain is required (or use --list)')

    try:
        config = Config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    level = logging.DEBUG if args.verbose else config.log_level
    setup_logging(log_file=args.log_file or config.log_file, level=level)
    logger.debug(f"Configuration: {config.to_dict()}")

    try:
        return asyncio.run(run_cli(args, config))
    except ScannerError as e:
        # Invalid domain, unknown probe, rate limit
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
