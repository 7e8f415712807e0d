"""
What-if CLI.

Usage:
    whatif prompts --genre mystery --event "a letter arrives" --mode logical --count 3
    whatif branches --file node.txt --density high
    whatif templates --category creative
    whatif templates --stats
    whatif health

Results are printed to stdout as JSON; logs go to stderr and logs/.
"""

import argparse
import json
import logging
import random
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from src.infra.logging_config import setup_logging
from src.registry.template_registry import TemplateFilter

from .config import SimulatorConfig
from .engine import build_engine
from .errors import InvalidParametersError, SimulatorError

logger = logging.getLogger("what_if")


def _add_parameter_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("story parameters")
    group.add_argument("--params-file", type=str, default=None,
                       help="JSON file with story parameters; flags below override it")
    group.add_argument("--character", type=str, default=None, help="Character name")
    group.add_argument("--traits", type=str, default=None, help="Comma-separated character traits")
    group.add_argument("--era", type=str, default=None)
    group.add_argument("--place", type=str, default=None)
    group.add_argument("--mood", type=str, default=None)
    group.add_argument("--event", type=str, default=None)
    group.add_argument("--genre", type=str, default=None)
    group.add_argument("--tone", type=str, default=None)
    group.add_argument("--audience-age", type=str, default=None)
    group.add_argument("--theme", nargs="*", default=None, help="Theme keywords")
    group.add_argument("--banned", nargs="*", default=None, help="Banned content terms")


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--count", type=int, default=None, help="Maximum results to return")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible output")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="whatif", description="What-if story simulator")
    parser.add_argument("--log-level", type=str, default="WARNING", help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--no-log-file", action="store_true", default=False,
                        help="Log to stderr only")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    prompts_parser = subparsers.add_parser("prompts", help="Generate what-if prompts")
    _add_parameter_arguments(prompts_parser)
    _add_run_arguments(prompts_parser)
    prompts_parser.add_argument("--mode", type=str, default=None, help="logical, creative or balanced")

    branches_parser = subparsers.add_parser("branches", help="Suggest branches for a story node")
    source = branches_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--content", type=str, help="Node text")
    source.add_argument("--file", type=str, help="File holding the node text")
    _add_parameter_arguments(branches_parser)
    _add_run_arguments(branches_parser)
    branches_parser.add_argument("--density", type=str, default=None, help="low, medium or high")

    templates_parser = subparsers.add_parser("templates", help="Inspect the template registry")
    templates_parser.add_argument("--category", type=str, default=None)
    templates_parser.add_argument("--genre", type=str, default=None)
    templates_parser.add_argument("--stats", action="store_true", default=False)
    templates_parser.add_argument("--recommendations", action="store_true", default=False)

    subparsers.add_parser("health", help="Show engine health")

    return parser


def parameters_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Merge --params-file with individual flags into a parameters dict."""
    params: Dict[str, Any] = {}
    if args.params_file:
        with open(args.params_file, "r", encoding="utf-8") as f:
            params = json.load(f)
        if not isinstance(params, dict):
            raise InvalidParametersError(f"{args.params_file} must hold a JSON object")

    if args.character or args.traits:
        character = dict(params.get("character") or {})
        if args.character:
            character["name"] = args.character
        if args.traits:
            character["traits"] = [t for t in args.traits.split(",") if t.strip()]
        params["character"] = character

    if args.era or args.place or args.mood:
        setting = dict(params.get("setting") or {})
        for key in ("era", "place", "mood"):
            if getattr(args, key):
                setting[key] = getattr(args, key)
        params["setting"] = setting

    for key in ("event", "genre", "tone", "audience_age"):
        if getattr(args, key):
            params[key] = getattr(args, key)
    if args.theme:
        params["theme_keywords"] = args.theme
    if args.banned:
        constraints = dict(params.get("constraints") or {})
        constraints["banned_content"] = args.banned
        params["constraints"] = constraints

    if getattr(args, "mode", None):
        params["mode"] = args.mode
    if getattr(args, "density", None):
        params["branch_density"] = args.density
    return params


def _engine(args: argparse.Namespace, config: SimulatorConfig):
    seed = getattr(args, "seed", None)
    rng = random.Random(seed) if seed is not None else None
    return build_engine(config, rng=rng)


def run_prompts(args: argparse.Namespace, config: SimulatorConfig) -> List[Dict[str, Any]]:
    engine = _engine(args, config)
    try:
        return [p.to_dict() for p in engine.generate_prompts(parameters_from_args(args), args.count)]
    finally:
        engine.close()


def run_branches(args: argparse.Namespace, config: SimulatorConfig) -> List[Dict[str, Any]]:
    content = args.content if args.content is not None else Path(args.file).read_text(encoding="utf-8")
    engine = _engine(args, config)
    try:
        branches = engine.generate_branches(content, parameters_from_args(args), args.count)
        return [b.to_dict() for b in branches]
    finally:
        engine.close()


def run_templates(args: argparse.Namespace, config: SimulatorConfig) -> Any:
    engine = build_engine(config)
    registry = engine.registry
    if registry is None:
        raise SimulatorError("Template registry is disabled (WHATIF_USE_TEMPLATE_REGISTRY=false)")
    if config.template_state_path and Path(config.template_state_path).exists():
        registry.load_state(config.template_state_path)

    if args.stats:
        return registry.get_stats()
    if args.recommendations:
        return {
            group: [t.to_dict() for t in templates]
            for group, templates in registry.get_recommendations().items()
        }
    templates = registry.find_templates(TemplateFilter(category=args.category, genre=args.genre))
    return [t.to_dict() for t in templates]


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.log_level, log_to_file=not args.no_log_file)

    try:
        config = SimulatorConfig.from_env()
        if args.command == "prompts":
            result = run_prompts(args, config)
        elif args.command == "branches":
            result = run_branches(args, config)
        elif args.command == "templates":
            result = run_templates(args, config)
        else:
            engine = build_engine(config)
            result = engine.get_health_status()
            engine.close()
    except SimulatorError as e:
        logger.error(f"[CLI] {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
