"""Command-line entry point: ``moles [directory] [options]``."""

import argparse
import sys
import traceback

from moles.agent import Agent
from moles.config import AgentConfig
from moles.reporter import Reporter, setup_logging
from moles.security import TargetValidator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="moles",
        description="Autonomous documentation agent (Plan → Execute → Reflect → Generate)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s ./my-project -o ./site-docs
  %(prog)s ./my-project --model gpt-4o-mini --language French -v
        """,
    )
    parser.add_argument(
        "directory",
        nargs="?",
        default=".",
        help="Directory of the codebase to document (default: current directory)",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output directory for the documentation (default: $OUTPUT_DIR or ./docs)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show the full Thought / Action / Observation trace",
    )
    parser.add_argument("-m", "--model", default=None, help="Override the LLM model")
    parser.add_argument("--api-key", default=None, help="Override the LLM API key")
    parser.add_argument("--base-url", default=None, help="Override the LLM base URL")
    parser.add_argument(
        "--language",
        default=None,
        help="Language to write the documentation in (default: model's choice)",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Cap on coordinator phases before documentation is forced (default: 10)",
    )
    return parser


def main(argv=None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    reporter = Reporter(verbose=args.verbose)

    is_valid, error, target_dir = TargetValidator.validate_target_dir(args.directory)
    if not is_valid:
        reporter.error(error)
        return 1

    try:
        config = AgentConfig.from_env(
            target_dir,
            output_dir=args.output,
            model=args.model,
            api_key=args.api_key,
            base_url=args.base_url,
            language=args.language,
            max_iterations=args.max_iterations,
            verbose=args.verbose or None,
        )

        print("=" * 60)
        print("[Moles] AUTONOMOUS DOCUMENTATION AGENT")
        print("=" * 60)
        print(f"Target: {config.target_dir}")
        print(f"Output: {config.output_dir}")
        print(f"Model:  {config.model}")

        state = Agent(config).run()
    except KeyboardInterrupt:
        print("\n[Moles] Interrupted")
        return 130
    except Exception as exc:
        reporter.error(str(exc))
        if args.verbose:
            traceback.print_exc()
        return 1

    print(f"\n[Done] Documentation available at: {state.output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
