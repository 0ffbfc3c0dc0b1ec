"""
obscom: command-line access to Obsidian commands.

Usage:
    obscom command list [--config PATH]
    obscom command run COMMAND_ID [--config PATH]
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from bttk_mcp.mcp_servers.common import configure_logging
from bttk_mcp.obsidian import Command, ObsidianClient
from bttk_mcp.utils.config_loader import load_config
from bttk_mcp.utils.exceptions import BttkMCPError

logger = logging.getLogger(__name__)

ROW_FORMAT = "{:<30} {}"


class _ArgumentParser(argparse.ArgumentParser):
    """Exits with status 1 on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        print(f"{self.prog}: error: {message}", file=sys.stderr)
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="obscom", description="Obsidian command line")
    parser.add_argument("--config", type=str, default=None, help="Path to config.json")

    groups = parser.add_subparsers(dest="group", parser_class=_ArgumentParser)
    command = groups.add_parser("command", help="Obsidian commands")
    command.add_argument("--config", type=str, default=argparse.SUPPRESS, help="Path to config.json")

    actions = command.add_subparsers(dest="action", parser_class=_ArgumentParser)
    list_parser = actions.add_parser("list", help="List available commands")
    list_parser.add_argument("--config", type=str, default=argparse.SUPPRESS, help="Path to config.json")
    run_parser = actions.add_parser("run", help="Execute a command")
    run_parser.add_argument("command_id", help="Command ID as shown by 'obscom command list'")
    run_parser.add_argument("--config", type=str, default=argparse.SUPPRESS, help="Path to config.json")

    return parser


def format_commands(commands: List[Command]) -> str:
    """Render commands as a NAME/ID table."""
    lines = [ROW_FORMAT.format("NAME", "ID"), ROW_FORMAT.format("----", "--")]
    lines.extend(ROW_FORMAT.format(cmd.name, cmd.id) for cmd in commands)
    return "\n".join(lines)


async def list_commands(client: ObsidianClient) -> None:
    commands = await client.commands.list()
    print(format_commands(commands))


async def run_command(client: ObsidianClient, command_id: str) -> None:
    await client.commands.execute(command_id)
    print(f"Command {command_id} executed")


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Run obscom.

    Returns:
        Process exit status
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.group != "command" or args.action is None:
        parser.print_usage(sys.stderr)
        return 1

    try:
        configure_logging()
        config = load_config(args.config)
        async with ObsidianClient.from_config(config.obsidian) as client:
            if args.action == "list":
                await list_commands(client)
            else:
                await run_command(client, args.command_id)
    except BttkMCPError as e:
        logger.error(f"obscom {args.action} failed: {e}")
        return 1

    return 0


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
