# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
pkgrestore command line

    pkgrestore install <id | packages.config> [options]
    pkgrestore config [<key>] [--as-path] [--set KEY=VALUE ...]
    pkgrestore sources <list|add|remove|enable|disable|update> [options]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from pkgrestore.configuration import ConfigurationDefaults, MachineWideSettings, load_default_settings
from pkgrestore.core.config import get_config
from pkgrestore.core.errors import PkgRestoreError
from pkgrestore.core.logging import configure_logging
from pkgrestore.install import InstallationOrchestrator
from pkgrestore.install.reference_file import MANIFEST_FILE_NAME
from pkgrestore.models import InstallOptions, PackageSource, SourceCredentials
from pkgrestore.sources import PackageSourceProvider, SettingsCredentialProvider
from pkgrestore.repositories import PackageRepositoryFactory

logger = logging.getLogger("pkgrestore.cli")


class CommandContext:
    """Settings, sources and defaults for one command invocation"""

    def __init__(self, config_file: Optional[str] = None, working_directory: Optional[Path] = None):
        self.config = get_config()
        self.working_directory = working_directory or Path.cwd()
        self.machine_wide_settings = MachineWideSettings(self.config.machine_config_path)
        self.settings = load_default_settings(
            self.working_directory,
            config_file_name=config_file,
            machine_wide_settings=self.machine_wide_settings,
            user_config_dir=self.config.user_config_path,
            settings_file_name=self.config.settings_file_name
        )
        self.configuration_defaults = ConfigurationDefaults.load(self.config.machine_config_path)
        self.source_provider = PackageSourceProvider(
            self.settings,
            configuration_default_sources=self.configuration_defaults.default_package_sources
        )

    def create_orchestrator(self) -> InstallationOrchestrator:
        factory = PackageRepositoryFactory(
            self.config,
            credential_provider=SettingsCredentialProvider(self.source_provider)
        )
        return InstallationOrchestrator(
            self.settings,
            self.source_provider,
            repository_factory=factory,
            config=self.config,
            configuration_defaults=self.configuration_defaults,
            machine_wide_settings=self.machine_wide_settings,
            user_config_dir=self.config.user_config_path,
            working_directory=self.working_directory
        )


# =============================================================================
# COMMANDS
# =============================================================================

def _is_manifest(target: str) -> bool:
    path = Path(target)
    return path.name.lower() == MANIFEST_FILE_NAME or path.suffix.lower() == ".config"


def run_install(args, context: CommandContext) -> int:
    options = InstallOptions(
        sources=args.source or [],
        output_directory=args.output_directory,
        solution_directory=args.solution_directory,
        exclude_version=args.exclude_version,
        prerelease=args.prerelease,
        no_cache=args.no_cache,
        require_consent=args.require_consent,
        disable_parallel=args.disable_parallel,
        ignore_dependencies=args.ignore_dependencies,
        target_framework=args.framework,
    )
    orchestrator = context.create_orchestrator()

    if _is_manifest(args.target):
        options.prerelease = True
        installed = orchestrator.install_from_manifest(Path(args.target), options)
        for package_id, error in orchestrator.restore_failures:
            print(f"Failed to restore {package_id}: {error}", file=sys.stderr)
        if orchestrator.restore_failures:
            return 1
        print("Packages restored." if installed else "All packages listed in the manifest are already installed.")
        return 0

    installed = orchestrator.install_single(args.target, args.version, options)
    print(f"Installed {args.target}." if installed else f"{args.target} is already installed.")
    return 0


def run_config(args, context: CommandContext) -> int:
    if args.set:
        values = []
        for item in args.set:
            key, sep, value = item.partition("=")
            if not sep or not key:
                raise PkgRestoreError(f"Invalid --set value '{item}', expected KEY=VALUE", exit_code=2)
            values.append((key, value))
        context.settings.set_values("config", values)
        return 0

    if not args.key:
        for key, value in context.settings.get_values("config", is_path=args.as_path):
            print(f"{key} = {value}")
        return 0

    value = context.settings.get_value("config", args.key, is_path=args.as_path)
    if value is None:
        print(f"Key '{args.key}' not found.", file=sys.stderr)
        return 1
    print(value)
    return 0


_PAST_TENSE = {
    "add": "added",
    "remove": "removed",
    "enable": "enabled",
    "disable": "disabled",
    "update": "updated",
}


def _find_source(sources: List[PackageSource], name: str) -> Optional[PackageSource]:
    return next((s for s in sources if s.name.lower() == name.lower()), None)


def run_sources(args, context: CommandContext) -> int:
    provider = context.source_provider
    sources = provider.load_package_sources()

    if args.action == "list":
        for index, source in enumerate(sources, 1):
            state = "Enabled" if source.is_enabled else "Disabled"
            flags = " (machine wide)" if source.is_machine_wide else ""
            print(f"{index}. {source.name} [{state}]{flags}\n   {source.location}")
        if not sources:
            print("No sources found.")
        return 0

    if not args.name:
        raise PkgRestoreError("--name is required", exit_code=2)

    existing = _find_source(sources, args.name)
    credentials = None
    if args.username or args.password:
        if not (args.username and args.password):
            raise PkgRestoreError("--username and --password must be given together", exit_code=2)
        credentials = SourceCredentials(
            user_name=args.username,
            password=args.password,
            is_password_clear_text=args.store_password_in_clear_text
        )

    if args.action == "add":
        if not args.source:
            raise PkgRestoreError("--source is required", exit_code=2)
        if existing is not None:
            raise PkgRestoreError(f"The source named '{args.name}' already exists.")
        sources.append(PackageSource(name=args.name, location=args.source, credentials=credentials))
    elif existing is None:
        raise PkgRestoreError(f"Unable to find any package source named '{args.name}'.")
    elif args.action == "remove":
        sources.remove(existing)
    elif args.action == "enable":
        existing.is_enabled = True
    elif args.action == "disable":
        existing.is_enabled = False
    elif args.action == "update":
        if args.source:
            existing.location = args.source
        if credentials is not None:
            existing.credentials = credentials

    provider.save_package_sources(sources)
    print(f"Package source '{args.name}' {_PAST_TENSE[args.action]}.")
    return 0


# =============================================================================
# PARSER
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pkgrestore", description="Install and restore packages")
    parser.add_argument(
        "--config-file",
        help="User configuration file to use instead of the per-user default",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    install = subparsers.add_parser("install", help="Install a package or restore a packages.config")
    install.add_argument("target", help="Package id or path to packages.config")
    install.add_argument("--version", help="Package version (default: latest)")
    install.add_argument("--source", action="append", help="Package source name or location (repeatable)")
    install.add_argument("-o", "--output-directory", help="Directory packages are installed into")
    install.add_argument("--solution-directory", help="Solution root; packages go to <dir>/packages")
    install.add_argument("-x", "--exclude-version", action="store_true", help="Install without version in folder names")
    install.add_argument("--prerelease", action="store_true", help="Allow prerelease packages")
    install.add_argument("--no-cache", action="store_true", help="Do not use the machine cache")
    install.add_argument("--require-consent", action="store_true", help="Require package restore consent")
    install.add_argument("--disable-parallel", action="store_true", help="Restore packages one at a time")
    install.add_argument("--ignore-dependencies", action="store_true", help="Do not install dependencies")
    install.add_argument("--framework", help="Target framework packages must support")
    install.set_defaults(handler=run_install)

    config = subparsers.add_parser("config", help="Get or set config values")
    config.add_argument("key", nargs="?", help="Key to read from the config section")
    config.add_argument("--set", action="append", metavar="KEY=VALUE", help="Set a config value (repeatable)")
    config.add_argument("--as-path", action="store_true", help="Resolve the value as a path")
    config.set_defaults(handler=run_config)

    sources = subparsers.add_parser("sources", help="Manage package sources")
    sources.add_argument("action", choices=["list", "add", "remove", "enable", "disable", "update"])
    sources.add_argument("-n", "--name", help="Source name")
    sources.add_argument("-s", "--source", help="Source location")
    sources.add_argument("--username", help="User name for an authenticated source")
    sources.add_argument("--password", help="Password for an authenticated source")
    sources.add_argument(
        "--store-password-in-clear-text",
        action="store_true",
        help="Store the password unencrypted",
    )
    sources.set_defaults(handler=run_sources)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose)

    try:
        context = CommandContext(config_file=args.config_file)
        return args.handler(args, context)
    except PkgRestoreError as e:
        logger.error(e.message)
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
