"""
Argument parsing and dispatch for the gdenv command.

Two command groups exist, `gdenv godot ...` and `gdenv addons ...`; each
lives in a module under gdenv.cli.commands exposing run(args) -> int.
"""

import argparse
import importlib
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import List, Optional

from gdenv.addons.installer import DEFAULT_MAX_CONCURRENCY
from gdenv.cli.utils import EmojiFilter, set_display_emoji
from gdenv.config.settings import Settings
from gdenv.core.exceptions import GdenvError

try:
    __version__ = version("gdenv")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)


class CLI:
    """Entry point object: builds the parser once, then run() per invocation."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="gdenv",
            description="gdenv - Manage Godot versions and addons",
            epilog='Use "gdenv COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Options valid before any command group
        parser.add_argument("--version", action="version", version=f"gdenv {__version__}")
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Show debug logging and tracebacks"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Only print errors",
        )
        parser.add_argument(
            "--project-root",
            type=Path,
            metavar="PATH",
            default=None,
            help="Godot project directory (default: working directory)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Command group", metavar="COMMAND"
        )

        self._add_addons_command(subparsers)
        self._add_godot_command(subparsers)

        return parser

    def _add_addons_command(self, subparsers):
        parser = subparsers.add_parser(
            "addons",
            help="Manage project addons",
            description="Install the addons declared in addons.json",
        )
        addons = parser.add_subparsers(
            dest="addons_command", help="Addon commands", metavar="ACTION"
        )

        install = addons.add_parser(
            "install",
            help="Install addons from addons.json",
            description="Reconcile the project's addons with addons.json",
        )
        install.add_argument(
            "--max-concurrency",
            type=int,
            default=DEFAULT_MAX_CONCURRENCY,
            metavar="N",
            help=f"Maximum addons installed at once (default: {DEFAULT_MAX_CONCURRENCY})",
        )
        install.add_argument(
            "--update",
            action="store_true",
            help="Fetch and fast-forward addons that follow a branch",
        )

        init = addons.add_parser(
            "init",
            help="Create a starter addons.json",
            description="Create addons.json, addons/.editorconfig and .gitignore",
        )
        init.add_argument(
            "--force", action="store_true", help="Overwrite an existing addons.json"
        )

    def _add_godot_command(self, subparsers):
        parser = subparsers.add_parser(
            "godot",
            help="Manage Godot installations",
            description="Download, install and switch between Godot versions",
        )
        godot = parser.add_subparsers(
            dest="godot_command", help="Godot commands", metavar="ACTION"
        )

        install = godot.add_parser(
            "install",
            help="Download and install a Godot version",
            description=(
                "Install a Godot version. Without VERSION, the version declared "
                "by the project (global.json, *.csproj, .godotrc) is used."
            ),
        )
        install.add_argument(
            "version", nargs="?", metavar="VERSION", help="Version, e.g. 4.4.1-stable"
        )
        self._add_dotnet_argument(install)
        install.add_argument(
            "--no-activate",
            action="store_true",
            help="Do not make the installed version the active one",
        )

        godot.add_parser(
            "list",
            help="List installed Godot versions",
            description="List installed Godot versions (* marks the active one)",
        )

        uninstall = godot.add_parser(
            "uninstall",
            help="Remove an installed Godot version",
        )
        uninstall.add_argument("version", metavar="VERSION", help="Version to remove")
        self._add_dotnet_argument(uninstall)

        use = godot.add_parser(
            "use",
            help="Activate an installed Godot version",
        )
        use.add_argument("version", metavar="VERSION", help="Version to activate")
        self._add_dotnet_argument(use)

        url = godot.add_parser(
            "url",
            help="Print the download URL of a Godot version",
        )
        url.add_argument("version", metavar="VERSION", help="Version, e.g. 4.4.1-stable")
        self._add_dotnet_argument(url)
        url.add_argument(
            "--templates",
            action="store_true",
            help="Print the export templates URL instead",
        )

    @staticmethod
    def _add_dotnet_argument(parser):
        parser.add_argument(
            "--dotnet",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Use the .NET build (default: as declared by the project, else no)",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """Parse args (sys.argv when None) without running anything."""
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Execute one gdenv invocation.

        Returns:
            Process exit code: 0 on success, 1 on a gdenv error, 130 on Ctrl+C
        """
        options = self.parse_args(args)
        self._configure_logging(options)

        if not options.command:
            self.parser.print_help()
            return 1

        try:
            options.settings = Settings.load()
            set_display_emoji(options.settings.terminal.display_emoji)
            return self._dispatch_command(options)
        except KeyboardInterrupt:
            logger.info("Interrupted")
            return 130
        except GdenvError as e:
            logger.error(f"Error: {e}")
            if options.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """Set up root logging for -v / -q; emoji are filtered per settings."""
        if args.verbose:
            level = logging.DEBUG
            fmt = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            fmt = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            fmt = "%(message)s"

        # force: a second CLI().run() in the same process must reconfigure
        logging.basicConfig(level=level, format=fmt, force=True)
        for handler in logging.getLogger().handlers:
            handler.addFilter(EmojiFilter())

    def _dispatch_command(self, args) -> int:
        handlers = {
            "addons": "gdenv.cli.commands.addons",
            "godot": "gdenv.cli.commands.godot",
        }

        if args.command not in handlers:
            logger.error(f"Unknown command: {args.command}")
            return 1
        if not getattr(args, f"{args.command}_command", None):
            # Group given without an action: show that group's help (exits)
            self.parser.parse_args([args.command, "--help"])
            return 1

        return importlib.import_module(handlers[args.command]).run(args)


def main():
    """Console script entry point."""
    sys.exit(CLI().run())


if __name__ == "__main__":
    main()
