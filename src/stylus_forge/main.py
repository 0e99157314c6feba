"""
Main entry point for the stylus-forge command line.
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict

from .builders.stylus_builder import StylusBuilder
from .config.settings import Settings
from .estimators.gas_estimator import GasEstimator, estimate_deployment_gas
from .service import compile_contract
from .utils.diagnostics import format_for_display
from .utils.logging import setup_logger

logger = setup_logger()


def read_source_file(file_path: Path) -> str:
    """Validate and read a Rust source file."""
    if not file_path.exists():
        raise FileNotFoundError(f"Source file not found: {file_path}")

    if file_path.suffix != '.rs':
        raise ValueError(f"File must have .rs extension: {file_path}")

    content = file_path.read_text()
    if not content.strip():
        raise ValueError(f"Source file is empty: {file_path}")

    return content


def _print_json(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2))


async def run_compile(args: argparse.Namespace, settings: Settings) -> bool:
    source = read_source_file(args.file)
    payload = await compile_contract(
        source,
        project_name=args.name or args.file.stem,
        use_fallback=args.fallback,
        settings=settings,
    )
    _print_json(payload)
    return payload["success"]


async def run_check(args: argparse.Namespace, settings: Settings) -> bool:
    source = read_source_file(args.file)
    check = await StylusBuilder(settings).validate_syntax_only(source)
    if check.valid:
        print("Syntax OK")
    else:
        print(format_for_display(check.errors))
    return check.valid


async def run_doctor(args: argparse.Namespace, settings: Settings) -> bool:
    version = await StylusBuilder(settings).toolchain_version()
    _print_json({"available": version is not None, "version": version})
    return version is not None


def run_estimate(args: argparse.Namespace, settings: Settings) -> bool:
    profile = GasEstimator(settings).estimate(args.file.read_bytes())
    _print_json(profile.to_dict())
    return True


def run_quote(args: argparse.Namespace, settings: Settings) -> bool:
    quote = estimate_deployment_gas(read_source_file(args.file))
    _print_json(quote.to_dict())
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compile and profile Stylus smart contracts",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for debug log files"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    compile_cmd = commands.add_parser("compile", help="Build a contract to WASM")
    compile_cmd.add_argument("file", type=Path, help="Path to Rust source file")
    compile_cmd.add_argument("--name", default=None, help="Project name (defaults to file stem)")
    compile_cmd.add_argument(
        "--fallback",
        action="store_true",
        help="Use the remote playground if cargo-stylus is not installed"
    )

    check_cmd = commands.add_parser("check", help="Syntax check only")
    check_cmd.add_argument("file", type=Path, help="Path to Rust source file")

    estimate_cmd = commands.add_parser("estimate", help="Gas profile of a compiled .wasm file")
    estimate_cmd.add_argument("file", type=Path, help="Path to compiled WASM artifact")

    quote_cmd = commands.add_parser("quote", help="Deployment gas quote from source")
    quote_cmd.add_argument("file", type=Path, help="Path to Rust source file")

    commands.add_parser("doctor", help="Report cargo-stylus availability")

    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()

    try:
        settings = Settings(log_dir=args.log_dir) if args.log_dir else Settings()
        setup_logger(settings.log_dir)

        if args.command == "compile":
            success = asyncio.run(run_compile(args, settings))
        elif args.command == "check":
            success = asyncio.run(run_check(args, settings))
        elif args.command == "doctor":
            success = asyncio.run(run_doctor(args, settings))
        elif args.command == "estimate":
            success = run_estimate(args, settings)
        else:
            success = run_quote(args, settings)

        # Exit with appropriate code
        sys.exit(0 if success else 1)

    except KeyboardInterrupt:
        print("\nCancelled by user")
        sys.exit(1)
    except (OSError, ValueError) as e:
        logger.error(str(e))
        print(f"Error: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
