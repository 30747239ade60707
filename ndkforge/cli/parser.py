"""
ndkforge CLI argument parser.

This module implements the command-line interface for ndkforge using argparse.
"""

import argparse
import importlib
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import List, Optional

from filelock import Timeout as LockTimeout

from ndkforge.core.exceptions import FatalError, NdkForgeError
from ndkforge.cross.targets import Architecture

try:
    __version__ = version("ndkforge")
except PackageNotFoundError:
    __version__ = "0.0.0"

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FATAL = 2
EXIT_INTERRUPTED = 130


class CLI:
    """ndkforge command-line interface."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="ndkforge",
            description="ndkforge - cross-compile native software for Android",
            epilog='Use "ndkforge COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"ndkforge {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ./ndkforge.yaml)",
        )
        parser.add_argument(
            "--log-file",
            type=Path,
            metavar="PATH",
            help="Also write a timestamped log to PATH",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_build_command(subparsers)
        self._add_list_command(subparsers)
        self._add_markers_command(subparsers)

        return parser

    @staticmethod
    def _add_target_options(parser):
        parser.add_argument(
            "--api", type=int, metavar="LEVEL", help="Android API level (default: 34)"
        )
        parser.add_argument(
            "--arch",
            metavar="ARCH",
            help=f"Target architecture: {', '.join(Architecture.names())} (default: aarch64)",
        )
        parser.add_argument(
            "--workspace",
            type=Path,
            metavar="PATH",
            help="Workspace root (default: ~/workspace)",
        )

    def _add_build_command(self, subparsers):
        """Add 'build' subcommand."""
        parser = subparsers.add_parser(
            "build",
            help="Cross-compile a recipe",
            description="Fetch, build and package a recipe for one Android target",
        )
        parser.add_argument("recipe", help="Recipe name (see 'ndkforge list')")
        parser.add_argument("product_version", metavar="VERSION", help="Version to build (e.g. 3.13.9)")
        self._add_target_options(parser)
        parser.add_argument(
            "--jobs", "-j", type=int, metavar="N", help="Parallel build jobs (default: CPU count)"
        )
        parser.add_argument("--host-tag", metavar="TAG", help="NDK prebuilt host tag")
        parser.add_argument("--ndk-root", type=Path, metavar="PATH", help="Use an installed NDK")
        parser.add_argument("--ndk-version", metavar="VER", help="NDK release (default: r27d)")
        parser.add_argument(
            "--env",
            action="append",
            default=[],
            metavar="KEY=VALUE",
            help="Override a toolchain variable (repeatable)",
        )
        parser.add_argument(
            "--with",
            dest="component_versions",
            action="append",
            default=[],
            metavar="COMPONENT=VERSION",
            help="Override a component version (repeatable)",
        )
        parser.add_argument(
            "--skip-host-python",
            action="store_true",
            help="Use a matching Python from PATH instead of building one",
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        subparsers.add_parser(
            "list",
            help="List available recipes",
            description="List every registered recipe",
        )

    def _add_markers_command(self, subparsers):
        """Add 'markers' subcommand with list/clear actions."""
        parser = subparsers.add_parser(
            "markers",
            help="Inspect or clear build markers",
            description="Inspect or clear the build markers of a target workspace",
        )
        actions = parser.add_subparsers(dest="markers_command", metavar="ACTION")

        list_parser = actions.add_parser("list", help="Show markers and their fingerprints")
        list_parser.add_argument("recipe", help="Recipe name")
        self._add_target_options(list_parser)

        clear_parser = actions.add_parser("clear", help="Remove markers to force rebuilds")
        clear_parser.add_argument("recipe", help="Recipe name")
        clear_parser.add_argument(
            "components", nargs="*", metavar="COMPONENT", help="Markers to clear (default: all)"
        )
        self._add_target_options(clear_parser)

    def parse_args(self, args: Optional[List[str]] = None):
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, 1 for a build error, 2 for a fatal error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return EXIT_ERROR

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return EXIT_INTERRUPTED
        except FatalError as e:
            logger.error(f"Fatal: {e}")
            return EXIT_FATAL
        except (NdkForgeError, LockTimeout) as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                logger.exception("Details:")
            return EXIT_ERROR

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet/log_file
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        handlers = [logging.StreamHandler()]
        if args.log_file:
            args.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(args.log_file, encoding="utf-8")
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
            )
            handlers.append(file_handler)

        handlers[0].setFormatter(logging.Formatter(format_str))
        logging.basicConfig(level=level, handlers=handlers, force=True)

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Returns:
            Exit code from command handler
        """
        command_map = {
            "build": "ndkforge.cli.commands.build",
            "list": "ndkforge.cli.commands.recipes",
            "markers": "ndkforge.cli.commands.markers",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return EXIT_ERROR

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
