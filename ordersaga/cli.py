"""
ordersaga CLI - Operator commands against an order store.

Commands:
    ordersaga show ORDER_ID                  # Order details and saga log
    ordersaga list --status pending          # Orders, optionally by status
    ordersaga deliver ORDER_ID               # Feed a delivery-started event
    ordersaga reconcile --gateway pkg.mod:make_gateway --once

The storage URL defaults to ``ORDERSAGA_STORAGE_URL`` (see OrderSagaConfig).
"""

import asyncio
import importlib

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ordersaga.core.config import OrderSagaConfig
from ordersaga.core.exceptions import OrderNotFound
from ordersaga.core.types import Order, OrderStatus
from ordersaga.monitoring.logging import setup_order_logging
from ordersaga.payment import PaymentCoordinator
from ordersaga.reconciler import PendingOrderReconciler, ReconcileReport
from ordersaga.saga import OrderSaga
from ordersaga.storage.factory import create_storage

console = Console()

_STATUS_STYLES = {
    OrderStatus.PENDING: "yellow",
    OrderStatus.PAYMENT_PROCESSED: "green",
    OrderStatus.PAYMENT_FAILED: "red",
    OrderStatus.DELIVERY_STARTED: "cyan",
}


class OrderedGroup(click.Group):
    """Click Group that lists commands in the order they were added."""

    def list_commands(self, ctx):
        return list(self.commands.keys())


@click.group(cls=OrderedGroup)
@click.version_option(version="0.1.0", prog_name="ordersaga")
@click.option("--storage-url", envvar="ORDERSAGA_STORAGE_URL", help="memory:// or sqlite:///path")
@click.pass_context
def cli(ctx: click.Context, storage_url: str | None):
    """
    ordersaga - inspect and operate on orders.

    \b
      Read-only:
        show             Show one order and its saga log
        list             List orders
    \b
      State modification:
        deliver          Apply a delivery-started event
        reconcile        Resume payment for stuck pending orders
    """
    config = OrderSagaConfig.from_env()
    if storage_url:
        config = config.with_storage(storage_url)
    ctx.obj = config


def _status_text(status: OrderStatus) -> str:
    style = _STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def _load_factory(path: str):
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        msg = f"Expected 'module:factory', got {path!r}"
        raise click.BadParameter(msg, param_hint="--gateway")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise click.BadParameter(f"Cannot load {path}: {e}", param_hint="--gateway") from e


def _operator_saga(config: OrderSagaConfig, gateway=None) -> OrderSaga:
    """Saga for stored orders only; create_order is not available on it."""
    store, saga_log = create_storage(config.storage_url)
    payments = PaymentCoordinator(gateway, call_timeout=config.call_timeout) if gateway else None
    return OrderSaga(resolver=None, store=store, payments=payments, saga_log=saga_log)


async def _close(saga: OrderSaga) -> None:
    await saga.store.close()
    await saga.saga_log.close()


# ============================================================================
# ordersaga show
# ============================================================================


@cli.command("show")
@click.argument("order_id")
@click.pass_obj
def show_cmd(config: OrderSagaConfig, order_id: str):
    """Show one order with its products and saga log."""

    async def _show():
        saga = _operator_saga(config)
        try:
            order = await saga.get_order(order_id)
            entries = await saga.saga_log.entries(order_id)
            return order, entries
        finally:
            await _close(saga)

    try:
        order, entries = asyncio.run(_show())
    except OrderNotFound as e:
        raise click.ClickException(str(e)) from e

    _print_order(order)

    log_table = Table(title="Saga log")
    log_table.add_column("Recorded at", style="dim")
    log_table.add_column("Step", style="cyan")
    log_table.add_column("Detail")
    for entry in entries:
        detail = escape(str(entry.detail)) if entry.detail else ""
        log_table.add_row(entry.recorded_at.isoformat(), entry.step.value, detail)
    console.print(log_table)


def _print_order(order: Order) -> None:
    console.print(f"[bold]Order {order.id}[/bold] {_status_text(order.status)} (v{order.version})")
    console.print(f"Customer: {order.customer.name} <{order.customer.email}>")
    console.print(f"Payment: {order.payment.amount} via {order.payment.method}")

    products = Table(title="Products")
    products.add_column("Product", style="cyan")
    products.add_column("Name")
    products.add_column("Price", justify="right")
    for product in order.products:
        products.add_row(product.product_id, product.name, str(product.price))
    products.add_row("", "[bold]Total[/bold]", f"[bold]{order.total}[/bold]")
    console.print(products)


# ============================================================================
# ordersaga list
# ============================================================================


@cli.command("list")
@click.option(
    "--status",
    "-s",
    type=click.Choice([s.value for s in OrderStatus]),
    help="Only orders in this status",
)
@click.option("--limit", "-n", default=50, show_default=True, help="Maximum orders to show")
@click.pass_obj
def list_cmd(config: OrderSagaConfig, status: str | None, limit: int):
    """List orders, oldest update first."""

    async def _list():
        saga = _operator_saga(config)
        try:
            return await saga.store.list_orders(
                status=OrderStatus(status) if status else None, limit=limit
            )
        finally:
            await _close(saga)

    orders = asyncio.run(_list())
    if not orders:
        click.echo("No orders found.")
        return

    table = Table(title="Orders")
    table.add_column("Order", style="cyan")
    table.add_column("Status")
    table.add_column("Customer")
    table.add_column("Total", justify="right")
    table.add_column("Updated", style="dim")
    for order in orders:
        table.add_row(
            order.id,
            _status_text(order.status),
            order.customer.email,
            str(order.total),
            order.updated_at.isoformat(),
        )
    console.print(table)


# ============================================================================
# ordersaga deliver
# ============================================================================


@cli.command("deliver")
@click.argument("order_id")
@click.pass_obj
def deliver_cmd(config: OrderSagaConfig, order_id: str):
    """Apply a delivery-started event to an order."""

    async def _deliver():
        saga = _operator_saga(config)
        try:
            await saga.on_delivery_started(order_id)
            return await saga.get_order(order_id)
        finally:
            await _close(saga)

    try:
        order = asyncio.run(_deliver())
    except OrderNotFound as e:
        raise click.ClickException(str(e)) from e

    console.print(f"Order {order.id} is now {_status_text(order.status)}")


# ============================================================================
# ordersaga reconcile
# ============================================================================


@cli.command("reconcile")
@click.option(
    "--gateway",
    "-g",
    required=True,
    help="Payment gateway factory as 'module:callable'",
)
@click.option("--once", is_flag=True, help="Run a single pass and exit")
@click.option("--interval", type=float, help="Seconds between passes (default from config)")
@click.pass_obj
def reconcile_cmd(config: OrderSagaConfig, gateway: str, once: bool, interval: float | None):
    """Resume payment for orders stuck in pending."""
    factory = _load_factory(gateway)
    setup_order_logging(log_level=config.log_level, json_format=config.log_json)

    async def _reconcile():
        saga = _operator_saga(config, gateway=factory())
        reconciler = PendingOrderReconciler(
            saga,
            stale_after=config.reconcile_stale_after,
            max_attempts=config.reconcile_max_attempts,
        )
        try:
            if once:
                return await reconciler.reconcile_once()
            await reconciler.run(interval or config.reconcile_interval)
            return None
        finally:
            await _close(saga)

    try:
        report = asyncio.run(_reconcile())
    except KeyboardInterrupt:
        click.echo("Reconciler interrupted.")
        return

    if report is not None:
        _print_report(report)


def _print_report(report: ReconcileReport) -> None:
    table = Table(title="Reconcile pass")
    table.add_column("Outcome", style="cyan")
    table.add_column("Orders", justify="right")
    table.add_row("processed", str(len(report.processed)))
    table.add_row("declined", str(len(report.declined)))
    table.add_row("still pending", str(len(report.still_pending)))
    table.add_row("abandoned", str(len(report.abandoned)))
    console.print(table)


def main():
    """Entry point for the ordersaga CLI."""
    cli()


if __name__ == "__main__":
    main()
