import argparse
import asyncio
from importlib import resources
import logging
import logging.config
import sys

import yaml

from .errors import RulesError
from .gateway import Gateway, GatewayClient
from .rules.rule import Rule
from .util import configured_timezone

logger = logging.getLogger(__name__)


def configure_logging():
    log_config = yaml.safe_load(
        resources.files(__package__).joinpath("log_config.yaml").read_text()
    )
    logging.config.dictConfig(log_config)


async def load_rules(client: GatewayClient) -> list[Rule]:
    """Fetch the thing catalog and every stored rule from the gateway."""
    gateway = Gateway()
    await gateway.refresh(client)
    tz = configured_timezone()
    return [
        Rule(gateway, client, description, tz=tz)
        for description in await client.list_rules()
    ]


async def find_rule(client: GatewayClient, rule_id: int) -> Rule:
    for rule in await load_rules(client):
        if rule.id == rule_id:
            return rule
    raise RulesError(f"Rule {rule_id} not found")


async def list_rules(client: GatewayClient, markup: bool):
    for rule in await load_rules(client):
        state = "enabled" if rule.enabled else "disabled"
        text = rule.to_human_markup() if markup else rule.to_human_text()
        print(f"[{rule.id}] {rule.name} ({state}): {text}")


async def set_enabled(client: GatewayClient, rule_id: int, enabled: bool):
    rule = await find_rule(client, rule_id)
    await rule.set_enabled(enabled)
    print(f"Rule {rule_id} {'enabled' if enabled else 'disabled'}")


async def delete_rule(client: GatewayClient, rule_id: int):
    rule = await find_rule(client, rule_id)
    await rule.delete()
    print(f"Rule {rule_id} deleted")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="gateway_rules", description="Inspect and manage gateway rules"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="Describe every rule")
    list_parser.add_argument(
        "--markup", action="store_true", help="Render interactive markup"
    )
    for command, help_text in (
        ("enable", "Enable a rule"),
        ("disable", "Disable a rule"),
        ("delete", "Delete a rule"),
    ):
        command_parser = subparsers.add_parser(command, help=help_text)
        command_parser.add_argument("rule_id", type=int)

    args = parser.parse_args(argv)
    configure_logging()
    client = GatewayClient()

    match args.command:
        case "list":
            work = list_rules(client, args.markup)
        case "enable" | "disable":
            work = set_enabled(client, args.rule_id, args.command == "enable")
        case _:
            work = delete_rule(client, args.rule_id)

    try:
        asyncio.run(work)
    except RulesError as error:
        logger.error("%s", error)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
