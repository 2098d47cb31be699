#!/usr/bin/env python3
"""
colourcanvas CLI

Command-line interface over a directory of ``<channel>.jsonl`` logs.

Usage:
    colourcanvas [--logs DIR] [--format FMT] <command> [subcommand] [options]

Commands:
    canvas      List canvases or show one
    resolve     Resolve every location of a canvas under its mode
    colour      Resolve one location with a per-location rule
    alias       List the votes or purchases of one alias
    config      Configuration management

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from typing import Any, Dict, List, Optional

from colourcanvas import __version__


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TABLE = "table"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        import yaml
        return yaml.dump(data, default_flow_style=False)
    elif fmt == OutputFormat.TABLE:
        return _format_table(data)
    else:
        return str(data)


def _format_table(data: Any) -> str:
    """Format data as ASCII table."""
    if isinstance(data, dict):
        rows = next((v for v in data.values() if isinstance(v, list) and v and isinstance(v[0], dict)), None)
        if rows is not None:
            data = rows
    if isinstance(data, list) and data and isinstance(data[0], dict):
        headers = list(data[0].keys())
        rows = [[str(row.get(h, ""))[:40] for h in headers] for row in data]
        widths = [max(len(h), max(len(r[i]) for r in rows)) for i, h in enumerate(headers)]

        lines = []
        lines.append(" | ".join(h.ljust(widths[i]) for i, h in enumerate(headers)))
        lines.append("-+-".join("-" * w for w in widths))
        for row in rows:
            lines.append(" | ".join(c.ljust(widths[i]) for i, c in enumerate(row)))
        return "\n".join(lines)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


class CanvasCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="colourcanvas",
            description="Resolve canvas colours from vote and purchase logs",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"colourcanvas {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml", "table", "text"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress error messages",
        )
        self.parser.add_argument("--logs", "-l", help="Log directory (default: channel.logs_dir)")
        self.parser.add_argument("--config", "-c", help="YAML configuration file")

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        self._register_canvas_commands()
        self._register_resolve_command()
        self._register_colour_commands()
        self._register_alias_commands()
        self._register_config_commands()

    def _register_canvas_commands(self) -> None:
        canvas = self.subparsers.add_parser("canvas", help="Canvas definitions")
        canvas_sub = canvas.add_subparsers(dest="subcommand")

        canvas_sub.add_parser("list", help="List canvases")

        show = canvas_sub.add_parser("show", help="Show one canvas")
        show.add_argument("--canvas", required=True, help="Canvas id (base64url record hash)")

    def _register_resolve_command(self) -> None:
        resolve = self.subparsers.add_parser("resolve", help="Resolve every location of a canvas")
        resolve.add_argument("--canvas", required=True, help="Canvas id")

    def _register_colour_commands(self) -> None:
        colour = self.subparsers.add_parser("colour", help="Resolve one location")
        colour_sub = colour.add_subparsers(dest="subcommand")

        for name, help_text in (
            ("voted", "Majority of votes"),
            ("latest-vote", "Most recent vote"),
            ("purchased", "Highest bid"),
            ("latest-purchase", "Most recent purchase"),
        ):
            cmd = colour_sub.add_parser(name, help=help_text)
            cmd.add_argument("--canvas", required=True, help="Canvas id")
            cmd.add_argument("-x", type=int, required=True)
            cmd.add_argument("-y", type=int, required=True)
            cmd.add_argument("-z", type=int, default=0)

    def _register_alias_commands(self) -> None:
        alias = self.subparsers.add_parser("alias", help="Records of one alias")
        alias_sub = alias.add_subparsers(dest="subcommand")

        for name in ("votes", "purchases"):
            cmd = alias_sub.add_parser(name, help=f"List {name} of an alias")
            cmd.add_argument("--canvas", required=True, help="Canvas id")
            cmd.add_argument("--alias", "-a", required=True, help="Alias (creator)")

    def _register_config_commands(self) -> None:
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., channel.logs_dir)")

        config_sub.add_parser("show", help="Show all configuration")
        config_sub.add_parser("validate", help="Validate configuration")
        config_sub.add_parser("schema", help="Export configuration schema")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            self._setup(parsed)
            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return 0

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except Exception as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return 1

    def _setup(self, args: argparse.Namespace) -> None:
        from colourcanvas.config import LOG_LEVELS, get_config_manager
        from colourcanvas.observability import configure_logging

        mgr = get_config_manager()
        if args.config:
            mgr.load_from_file(args.config)
        else:
            mgr.load_defaults()
        obs = mgr.config.observability
        level, fmt = obs.log_level.get(), obs.log_format.get()
        if level not in LOG_LEVELS:
            raise CLIError(f"Invalid log level {level!r}; expected one of {', '.join(LOG_LEVELS)}", exit_code=2)
        if fmt not in ("json", "text"):
            raise CLIError(f"Invalid log format {fmt!r}; expected json or text", exit_code=2)
        configure_logging(level, fmt)

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name.replace("-", "_"), None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}")

        return handler(args)

    # Helpers
    def _channels(self, args: argparse.Namespace) -> Any:
        from colourcanvas.channel import DirectoryChannelFactory
        return DirectoryChannelFactory.from_config(args.logs)

    def _loader(self, args: argparse.Namespace) -> Any:
        from colourcanvas.resolver import CanvasLoader

        try:
            loader = CanvasLoader.from_canvas_id(self._channels(args), args.canvas)
        except ValueError:
            raise CLIError(f"Invalid canvas id: {args.canvas}", exit_code=2) from None
        if loader.load_canvas() is None:
            raise CLIError(f"Canvas not found: {args.canvas}", exit_code=2)
        return loader

    @staticmethod
    def _record_dict(record: Any) -> Dict[str, Any]:
        out: Dict[str, Any] = {"creator": record.creator}
        out.update(record.location.to_dict())
        out["colour"] = record.colour.hex
        price = getattr(record, "price", None)
        if price is not None:
            out["price"] = price
        return out

    # Canvas handlers
    def _handle_canvas_list(self, args: argparse.Namespace) -> Any:
        from colourcanvas.aggregators import list_canvases
        canvases = list_canvases(self._channels(args).canvases())
        return {"canvases": [c.to_dict() for c in canvases], "count": len(canvases)}

    def _handle_canvas_show(self, args: argparse.Namespace) -> Any:
        return self._loader(args).canvas.to_dict()

    # Resolve handler
    def _handle_resolve(self, args: argparse.Namespace) -> Any:
        loader = self._loader(args)
        locations = []
        for location, colour in loader.resolve_location_colours():
            row: Dict[str, Any] = dict(location.to_dict())
            row["colour"] = colour.hex
            locations.append(row)
        return {
            "canvas_id": loader.canvas_id,
            "mode": loader.canvas.mode.name,
            "locations": locations,
            "count": len(locations),
            "report": loader.report.to_dict() if loader.report else None,
        }

    # Colour handlers
    def _colour(self, args: argparse.Namespace, rule: str) -> Any:
        from colourcanvas import aggregators
        from colourcanvas.model import Location

        loader = self._loader(args)
        location = Location(args.x, args.y, args.z)
        if not loader.canvas.contains(location):
            raise CLIError(f"Location {location} outside canvas {loader.canvas.dimensions}", exit_code=2)

        if rule in ("voted_colour", "latest_vote"):
            channel = self._channels(args).votes(loader.canvas_id)
        else:
            channel = self._channels(args).purchases(loader.canvas_id)
        outcome: Any = getattr(aggregators, rule)(channel, location)
        return {
            "location": location.to_dict(),
            "rule": rule,
            "colour": outcome.colour.hex if outcome.decided else None,
            "decided": outcome.decided,
            "report": outcome.report.to_dict(),
        }

    def _handle_colour_voted(self, args: argparse.Namespace) -> Any:
        return self._colour(args, "voted_colour")

    def _handle_colour_latest_vote(self, args: argparse.Namespace) -> Any:
        return self._colour(args, "latest_vote")

    def _handle_colour_purchased(self, args: argparse.Namespace) -> Any:
        return self._colour(args, "purchased_colour")

    def _handle_colour_latest_purchase(self, args: argparse.Namespace) -> Any:
        return self._colour(args, "latest_purchase")

    # Alias handlers
    def _handle_alias_votes(self, args: argparse.Namespace) -> Any:
        from colourcanvas.aggregators import alias_votes
        loader = self._loader(args)
        votes = alias_votes(self._channels(args).votes(loader.canvas_id), args.alias)
        return {"alias": args.alias, "votes": [self._record_dict(v) for v in votes], "count": len(votes)}

    def _handle_alias_purchases(self, args: argparse.Namespace) -> Any:
        from colourcanvas.aggregators import alias_purchases
        loader = self._loader(args)
        purchases = alias_purchases(self._channels(args).purchases(loader.canvas_id), args.alias)
        return {
            "alias": args.alias,
            "purchases": [self._record_dict(p) for p in purchases],
            "count": len(purchases),
        }

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        from colourcanvas.config import get_config_manager
        return {"path": args.path, "value": get_config_manager().get(args.path)}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        from colourcanvas.config import get_config_manager
        return get_config_manager().config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        from colourcanvas.config import get_config_manager
        errors = get_config_manager().validate()
        return {"valid": len(errors) == 0, "errors": errors}

    def _handle_config_schema(self, args: argparse.Namespace) -> Any:
        from colourcanvas.config import get_config_manager
        return get_config_manager().export_schema()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    cli = CanvasCLI()
    return cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())
