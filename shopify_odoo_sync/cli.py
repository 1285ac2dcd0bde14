import json
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TextIO

import click

from .handlers import (
    HandlerResponse,
    handle_company_webhook,
    handle_customer_webhook,
    handle_order_webhook,
    handle_transaction_webhook,
)
from .helpers import SyncError
from .services.sync.base import SyncResult
from .services.sync.service import SyncService
from .settings import SyncSettings

WEBHOOK_HANDLERS: dict[str, Callable[[SyncService, dict], HandlerResponse]] = {
    "orders": handle_order_webhook,
    "customers": handle_customer_webhook,
    "company_locations": handle_company_webhook,
    "order_transactions": handle_transaction_webhook,
}


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def load_cli_settings(env_file: Path | None) -> SyncSettings:
    if env_file is None:
        return SyncSettings()
    return SyncSettings(_env_file=env_file)


@contextmanager
def open_service(context: click.Context) -> Iterator[SyncService]:
    try:
        service = SyncService(load_cli_settings(context.obj["env_file"]))
    except SyncError as error:
        raise click.ClickException(str(error)) from error
    with service:
        yield service


def echo_result(result: SyncResult) -> None:
    click.echo(json.dumps({"id": result.record_id, "new": result.is_new}))


def run_sync(context: click.Context, action: Callable[[SyncService], SyncResult]) -> None:
    with open_service(context) as service:
        try:
            result = action(service)
        except SyncError as error:
            raise click.ClickException(str(error)) from error
    echo_result(result)


@click.group()
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.option("--env-file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.pass_context
def main(context: click.Context, verbose: bool, env_file: Path | None) -> None:
    configure_logging(verbose)
    context.ensure_object(dict)
    context.obj["env_file"] = env_file


@main.command("order")
@click.argument("shopify_gid")
@click.pass_context
def order_command(context: click.Context, shopify_gid: str) -> None:
    run_sync(context, lambda service: service.sync_order(shopify_gid))


@main.command("customer")
@click.argument("shopify_gid")
@click.pass_context
def customer_command(context: click.Context, shopify_gid: str) -> None:
    run_sync(context, lambda service: service.sync_customer(shopify_gid))


@main.command("company")
@click.argument("shopify_gid")
@click.pass_context
def company_command(context: click.Context, shopify_gid: str) -> None:
    run_sync(context, lambda service: service.sync_company(shopify_gid))


@main.command("transaction")
@click.argument("order_gid")
@click.argument("transaction_gid")
@click.pass_context
def transaction_command(context: click.Context, order_gid: str, transaction_gid: str) -> None:
    run_sync(context, lambda service: service.sync_transaction(order_gid, transaction_gid))


@main.command("webhook")
@click.argument("topic", type=click.Choice(sorted(WEBHOOK_HANDLERS)))
@click.argument("payload_file", type=click.File("r"))
@click.pass_context
def webhook_command(context: click.Context, topic: str, payload_file: TextIO) -> None:
    """Replay a stored webhook payload through its handler."""
    try:
        payload = json.load(payload_file)
    except json.JSONDecodeError as error:
        raise click.BadParameter(f"invalid JSON payload: {error}") from error
    if not isinstance(payload, dict):
        raise click.BadParameter("webhook payload must be a JSON object")
    with open_service(context) as service:
        response = WEBHOOK_HANDLERS[topic](service, payload)
    click.echo(json.dumps(response.body))
    if response.status_code != 200:
        raise click.exceptions.Exit(1)


if __name__ == "__main__":
    main()
