import argparse
import logging
import sys
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from .core.collectors import (
    ConfigurationError,
    ExportError,
    PipelineError,
    collect_infrastructure,
    validate_sources,
)
from .core.config import AppConfig, load_config
from .core.diagrams import DETAIL_LEVELS, export_diagram, render_d2, theme_names


def setup_logging(log_level: str = "WARNING") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def _split_pair(value: str) -> Tuple[str, str]:
    """``path:server`` -> (path, server), split on the last colon."""
    path, sep, server = value.rpartition(":")
    if not sep:
        return value, ""
    return path, server


def _section(config: AppConfig, key: str) -> dict:
    section = config.sources.get(key)
    if not isinstance(section, dict):
        section = {}
        config.sources[key] = section
    return section


def apply_flag_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    """Layer command-line flags over the loaded config, in place."""
    if args.output:
        config.output = args.output
    if args.ansible_inventory:
        _section(config, "ansible")["inventory"] = args.ansible_inventory
    if args.ansible_group_vars:
        _section(config, "ansible")["group_vars"] = args.ansible_group_vars
    for key, values in (("files", args.compose_file), ("scan_dirs", args.compose_scan_dir)):
        if not values:
            continue
        section = _section(config, "compose")
        entries = list(section.get(key) or [])
        for value in values:
            path, server = _split_pair(value)
            entries.append({"path": path, "server": server})
        section[key] = entries
    if args.tailscale:
        _section(config, "tailscale")["enabled"] = True
    if args.tailscale_json:
        section = _section(config, "tailscale")
        section["enabled"] = True
        section["json_file"] = args.tailscale_json
    if args.detail:
        config.render.detail_level = args.detail
    if args.render:
        config.render.auto_render = True
    if args.format:
        config.render.format = args.format
    if args.theme:
        config.theme = args.theme


def run_generate(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Failed to load config: {e}", file=sys.stderr)
        return 1

    apply_flag_overrides(config, args)

    print("Collecting infrastructure data...")
    try:
        infra, results = collect_infrastructure(config.sources)
    except PipelineError as e:
        for result in e.results:
            print(result.status_line())
        print(f"Generation aborted: {e.error}", file=sys.stderr)
        return 1

    for result in results:
        print(result.status_line())

    content = render_d2(infra, config)
    try:
        with open(config.output, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        print(f"Failed to write output: {e}", file=sys.stderr)
        return 1

    print(f"Generated {config.output} ({len(infra.servers)} servers, {infra.service_count()} services)")

    if config.render.auto_render:
        try:
            rendered = export_diagram(config.output, config.render.format)
        except ExportError as e:
            # The .d2 file is already written; a failed export does not fail the run
            print(f"Auto-render failed: {e}", file=sys.stderr)
        else:
            print(f"Rendered {rendered}")
    return 0


def run_validate(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Failed to load config: {e}", file=sys.stderr)
        return 1

    print("Validating configuration...")
    report = validate_sources(config.sources)

    for name, problems in report.checked.items():
        if not problems:
            print(f"  {name}: configuration valid")
            continue
        for problem in problems:
            line = f"  {problem.field}: {problem.message}"
            if problem.suggestion:
                line += f" ({problem.suggestion})"
            print(line)

    print()
    print(f"{len(report.passed)} checks passed, {len(report.problems)} errors")
    return 0 if report.ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inframap",
        description="Generate D2 infrastructure diagrams from multiple sources",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Config file (default: inframap.yml in the working directory)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    gen = subparsers.add_parser("generate", help="Generate a D2 infrastructure diagram")
    gen.add_argument("-o", "--output", help="Output D2 file path")
    gen.add_argument("--ansible-inventory", help="Path to Ansible hosts.yml")
    gen.add_argument("--ansible-group-vars", help="Path to Ansible group_vars/")
    gen.add_argument("--compose-file", action="append", metavar="PATH[:SERVER]",
                     help="Compose file, repeatable")
    gen.add_argument("--compose-scan-dir", action="append", metavar="PATH[:SERVER]",
                     help="Directory scanned for compose files, repeatable")
    gen.add_argument("--tailscale", action="store_true", help="Collect Tailscale status")
    gen.add_argument("--tailscale-json", help="Saved `tailscale status --json` output")
    gen.add_argument("--detail", choices=DETAIL_LEVELS, help="Detail level")
    gen.add_argument("--render", action="store_true", help="Render the D2 file with d2 afterwards")
    gen.add_argument("--format", choices=["svg", "png", "pdf"], help="Image format for --render")
    gen.add_argument("--theme", choices=theme_names(), help="Colour theme")
    gen.set_defaults(func=run_generate)

    val = subparsers.add_parser("validate", help="Validate the configured sources")
    val.set_defaults(func=run_validate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for inframap."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    logger.info("Running %s", args.command)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
