#!/usr/bin/env python3
"""
DAuth CLI

Local runtime harness: authenticates nothing, takes the caller account from
``--caller`` and pushes actions against a SQLite (or in-memory) store.

Usage:
    dauth [--db PATH] <command> <subcommand> [options]

Commands:
    ork         register, show, list
    user        init, confirm, show, status
    fragment    post, show
    config      show, get, validate, schema

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from typing import Any, List, Optional

from dauth import __version__
from dauth.auth import AuthenticatedCaller
from dauth.config import ConfigError, get_config, get_config_manager
from dauth.hardening import ContractError
from dauth.observability import DAuthComponent, configure_logging, get_logger, timed_operation

logger = get_logger("cli", DAuthComponent.CLI)


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        import yaml
        return yaml.safe_dump(data, default_flow_style=False)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


class DAuthCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="dauth",
            description="DAuth onboarding contract harness",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"dauth {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml", "text"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress error output",
        )
        self.parser.add_argument("--db", help="SQLite database path (overrides storage config)")
        self.parser.add_argument("--config", "-c", help="YAML configuration file")

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()
        self._contract = None

    def _register_commands(self) -> None:
        self._register_ork_commands()
        self._register_user_commands()
        self._register_fragment_commands()
        self._register_config_commands()

    def _register_ork_commands(self) -> None:
        ork = self.subparsers.add_parser("ork", help="Ork assignment")
        ork_sub = ork.add_subparsers(dest="subcommand")

        register = ork_sub.add_parser("register", help="Claim or update a username's ork entry")
        register.add_argument("--caller", required=True, help="Ork node account")
        register.add_argument("--username", "-u", type=int, required=True, help="Username id")
        register.add_argument("--public-key", required=True, help="Ork public key")
        register.add_argument("--url", required=True, help="Ork endpoint URL")

        show = ork_sub.add_parser("show", help="Show a username's ork entry")
        show.add_argument("--username", "-u", type=int, required=True, help="Username id")

        ork_sub.add_parser("list", help="List ork entries")

    def _register_user_commands(self) -> None:
        user = self.subparsers.add_parser("user", help="User onboarding")
        user_sub = user.add_subparsers(dest="subcommand")

        init = user_sub.add_parser("init", help="Initialize or refresh a pending user")
        init.add_argument("--caller", required=True, help="Vendor account")
        init.add_argument("--username", "-u", type=int, required=True, help="Username id")
        init.add_argument("--timeout", "-t", type=int, required=True, help="Pending expiry (unix time)")

        confirm = user_sub.add_parser("confirm", help="Confirm a pending user")
        confirm.add_argument("--caller", required=True, help="Vendor account")
        confirm.add_argument("--username", "-u", type=int, required=True, help="Username id")

        show = user_sub.add_parser("show", help="Show a user record")
        show.add_argument("--username", "-u", type=int, required=True, help="Username id")

        status = user_sub.add_parser("status", help="Lifecycle status of a user")
        status.add_argument("--username", "-u", type=int, required=True, help="Username id")
        status.add_argument("--now", type=int, help="Reference unix time for expiry")

    def _register_fragment_commands(self) -> None:
        fragment = self.subparsers.add_parser("fragment", help="Key fragments")
        fragment_sub = fragment.add_subparsers(dest="subcommand")

        post = fragment_sub.add_parser("post", help="Post or replace a fragment")
        post.add_argument("--caller", required=True, help="Ork node account")
        post.add_argument("--ork-username", type=int, required=True, help="Ork username id")
        post.add_argument("--username", "-u", type=int, required=True, help="Username id")
        post.add_argument("--vendor", type=int, required=True, help="Vendor id")
        post.add_argument("--private-key-frag", required=True, help="Encrypted fragment")
        post.add_argument("--public-key", required=True, help="User public key")
        post.add_argument("--pass-hash", required=True, help="Password hash")

        show = fragment_sub.add_parser("show", help="Show a fragment (payload redacted)")
        show.add_argument("--ork", required=True, help="Ork account namespace")
        show.add_argument("--username", "-u", type=int, required=True, help="Username id")

    def _register_config_commands(self) -> None:
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., storage.backend)")

        config_sub.add_parser("show", help="Show all configuration")
        config_sub.add_parser("validate", help="Validate configuration")
        config_sub.add_parser("schema", help="Export configuration schema")

    def run(self, args: Optional[List[str]] = None) -> int:
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            manager = get_config_manager()
            if parsed.config:
                manager.load_from_file(parsed.config)
            else:
                manager.load_defaults()
            config = get_config()
            configure_logging(
                config.observability.log_level.get(),
                config.observability.log_format.get(),
            )
            result = self._dispatch(parsed)
            if result is not None:
                print(format_output(result, OutputFormat(parsed.format)))
            return 0

        except ContractError as e:
            if not parsed.quiet:
                print(f"Error: {e.message}", file=sys.stderr)
            return e.exit_code

        except (CLIError, ConfigError) as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return getattr(e, "exit_code", 1)

        finally:
            if self._contract is not None:
                self._contract.store.close()
                self._contract = None

    @timed_operation(logger, "cli.dispatch")
    def _dispatch(self, args: argparse.Namespace) -> Any:
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}".strip())

        return handler(args)

    def _contract_for(self, args: argparse.Namespace):
        from dauth.contract import AuthenticationContract
        from dauth.storage import SqliteStore

        if self._contract is None:
            store = SqliteStore(args.db) if args.db else None
            self._contract = AuthenticationContract(store=store)
        return self._contract

    # Ork handlers
    def _handle_ork_register(self, args: argparse.Namespace) -> Any:
        contract = self._contract_for(args)
        record = contract.addork(
            AuthenticatedCaller(args.caller), args.username, args.public_key, args.url
        )
        return {"username": args.username, **record.to_dict()}

    def _handle_ork_show(self, args: argparse.Namespace) -> Any:
        record = self._contract_for(args).orks.get(args.username)
        if record is None:
            raise CLIError(f"no ork entry for username {args.username}", exit_code=4)
        return {"username": args.username, **record.to_dict()}

    def _handle_ork_list(self, args: argparse.Namespace) -> Any:
        entries = [
            {"username": username, **record.to_dict()}
            for username, record in self._contract_for(args).orks.list()
        ]
        return {"orks": entries, "count": len(entries)}

    # User handlers
    def _handle_user_init(self, args: argparse.Namespace) -> Any:
        record = self._contract_for(args).inituser(
            AuthenticatedCaller(args.caller), args.username, args.timeout
        )
        return {"username": args.username, **record.to_dict()}

    def _handle_user_confirm(self, args: argparse.Namespace) -> Any:
        record = self._contract_for(args).confirmuser(AuthenticatedCaller(args.caller), args.username)
        return {"username": args.username, **record.to_dict()}

    def _handle_user_show(self, args: argparse.Namespace) -> Any:
        record = self._contract_for(args).users.get(args.username)
        if record is None:
            raise CLIError(f"no user record for username {args.username}", exit_code=4)
        return {"username": args.username, **record.to_dict()}

    def _handle_user_status(self, args: argparse.Namespace) -> Any:
        status = self._contract_for(args).users.status(args.username, now=args.now)
        return {"username": args.username, "status": status.value}

    # Fragment handlers
    def _handle_fragment_post(self, args: argparse.Namespace) -> Any:
        record = self._contract_for(args).postfragment(
            AuthenticatedCaller(args.caller),
            args.ork_username,
            args.username,
            args.vendor,
            args.private_key_frag,
            args.public_key,
            args.pass_hash,
        )
        return {"username": args.username, "ork": args.caller, **record.redacted()}

    def _handle_fragment_show(self, args: argparse.Namespace) -> Any:
        record = self._contract_for(args).fragments.get(args.ork, args.username)
        if record is None:
            raise CLIError(f"no fragment for username {args.username} under {args.ork}", exit_code=4)
        return {"username": args.username, "ork": args.ork, **record.redacted()}

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        return {"path": args.path, "value": get_config_manager().get(args.path)}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        return get_config_manager().config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        errors = get_config_manager().validate()
        return {"valid": len(errors) == 0, "errors": errors}

    def _handle_config_schema(self, args: argparse.Namespace) -> Any:
        return get_config_manager().export_schema()


def main() -> int:
    """CLI entry point."""
    return DAuthCLI().run()


if __name__ == "__main__":
    sys.exit(main())
