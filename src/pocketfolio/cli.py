"""Command line interface for PocketFolio."""

from __future__ import annotations

import functools
import time
from datetime import datetime

import click

from .config import BaseConfig
from .context import AppContext, create_app_context
from .errors import PortfolioError
from .logging_config import setup_logging
from .models.transaction import AssetClass, TransactionKind
from .scheduler import create_scheduler
from .services.market_data import insurance_products
from .services.seed import seed_demo

TRADABLE = click.Choice([c.value for c in AssetClass if c.is_tradable], case_sensitive=False)


def _money(value: float) -> str:
    return f"{value:,.2f}"


def _handle_errors(func):
    """Turn domain errors into a clean CLI failure instead of a traceback."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PortfolioError as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


pass_app = click.make_pass_decorator(AppContext)


@click.group()
@click.pass_context
def main(ctx: click.Context) -> None:
    """Track stocks, crypto and insurance policies."""

    if ctx.obj is None:
        config = BaseConfig()
        setup_logging(config)
        app = create_app_context(config)
        ctx.call_on_close(app.close)
        ctx.obj = app


@main.command()
@click.argument("asset_class", type=TRADABLE)
@click.argument("asset_id")
@click.argument("quantity", type=float)
@click.option("--price", type=float, default=None, help="Unit price; defaults to current quote")
@click.option("--name", default=None, help="Display name for a new asset")
@pass_app
@_handle_errors
def buy(app: AppContext, asset_class: str, asset_id: str, quantity: float, price, name) -> None:
    """Buy QUANTITY units of ASSET_ID."""

    tx = app.portfolio.buy(
        AssetClass(asset_class.lower()), asset_id, quantity, unit_price=price, asset_name=name
    )
    click.echo(
        f"Bought {tx.quantity:g} {tx.asset_id} @ {_money(tx.unit_price)} "
        f"= {_money(tx.total_value)} ({tx.id})"
    )


@main.command()
@click.argument("asset_class", type=TRADABLE)
@click.argument("asset_id")
@click.argument("quantity", type=float)
@click.option("--price", type=float, default=None, help="Unit price; defaults to current quote")
@pass_app
@_handle_errors
def sell(app: AppContext, asset_class: str, asset_id: str, quantity: float, price) -> None:
    """Sell QUANTITY units of ASSET_ID."""

    tx = app.portfolio.sell(AssetClass(asset_class.lower()), asset_id, quantity, unit_price=price)
    click.echo(
        f"Sold {tx.quantity:g} {tx.asset_id} @ {_money(tx.unit_price)} "
        f"= {_money(tx.total_value)} ({tx.id})"
    )


@main.group()
def policy() -> None:
    """Buy or cancel insurance policies."""


@policy.command("buy")
@click.argument("product_id")
@click.option("--premium", type=float, default=None, help="Premium for products not in the catalog")
@click.option("--name", default=None)
@pass_app
@_handle_errors
def policy_buy(app: AppContext, product_id: str, premium, name) -> None:
    """Purchase one policy of PRODUCT_ID."""

    tx = app.portfolio.purchase_policy(product_id, premium=premium, name=name)
    click.echo(f"Purchased {tx.asset_name} for {_money(tx.unit_price)}; policy id {tx.id}")


@policy.command("cancel")
@click.argument("policy_id")
@pass_app
@_handle_errors
def policy_cancel(app: AppContext, policy_id: str) -> None:
    """Cancel the policy opened by transaction POLICY_ID."""

    tx = app.portfolio.cancel_policy(policy_id)
    click.echo(f"Cancelled {tx.asset_name} ({policy_id})")


@main.command()
@pass_app
@_handle_errors
def holdings(app: AppContext) -> None:
    """Show current holdings with profit and loss."""

    current = app.portfolio.holdings()
    if not len(current):
        click.echo("No holdings.")
        return
    for position in current.positions():
        flag = " (stale)" if position.stale else ""
        click.echo(
            f"{AssetClass(position.asset_class).value:<9} {position.asset_id:<14} "
            f"qty {position.quantity:g} avg {_money(position.avg_buy_price)} "
            f"now {_money(position.current_price)}{flag} "
            f"value {_money(position.total_value)} "
            f"P/L {_money(position.profit)} ({position.profit_percentage:.2f}%)"
        )
    for held in current.insurance:
        click.echo(
            f"{'insurance':<9} {held.asset_id:<14} {held.asset_name} "
            f"premium {_money(held.premium)} [{held.status}] {held.policy_id}"
        )
    totals = current.totals()
    click.echo(f"Total value: {_money(totals.total_value)}")


@main.command()
@click.option("--limit", "-n", type=int, default=10, show_default=True)
@pass_app
def recent(app: AppContext, limit: int) -> None:
    """Show the newest transactions."""

    rows = app.ledger.recent(limit)
    if not rows:
        click.echo("No transactions.")
        return
    for tx in rows:
        when = datetime.fromtimestamp(tx.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
        click.echo(
            f"{when} {TransactionKind(tx.kind).value:<6} {tx.asset_id:<14} "
            f"{tx.quantity:g} @ {_money(tx.unit_price)} = {_money(tx.total_value)}"
        )


@main.command()
@click.option("--months", type=int, default=12, show_default=True)
@pass_app
def history(app: AppContext, months: int) -> None:
    """Show the performance history, oldest first."""

    for point in app.recorder.history(months):
        day = point.snapshot_date.isoformat() if point.snapshot_date else "-"
        click.echo(f"{point.label:<4} {day:<10} {_money(point.total_value)}")


@main.command()
@pass_app
def allocation(app: AppContext) -> None:
    """Show the share of each asset class."""

    shares = app.reporter.allocation()
    for label, share in shares.as_dict().items():
        click.echo(f"{label:<10} {share}%")


@main.command()
@pass_app
def change(app: AppContext) -> None:
    """Show the change between the two most recent snapshots."""

    for label, pct in app.reporter.month_over_month_change().as_dict().items():
        click.echo(f"{label:<10} {pct:+.2f}%")


@main.command()
@pass_app
def best(app: AppContext) -> None:
    """Show the best performing holding."""

    performer = app.reporter.best_performer()
    if performer is None:
        click.echo("No holding is in profit.")
        return
    click.echo(
        f"{performer.asset_name} ({performer.asset_id}) "
        f"{performer.profit_percentage:+.2f}% P/L {_money(performer.profit)}"
    )


@main.command()
@pass_app
@_handle_errors
def refresh(app: AppContext) -> None:
    """Fetch prices, revalue and update today's snapshot."""

    current = app.portfolio.refresh_prices()
    click.echo(f"Portfolio value: {_money(current.totals().total_value)}")
    if current.has_stale_prices:
        click.echo("Some prices are stale; showing last known values.")


@main.group()
def cash() -> None:
    """Manage the cash balance."""


@cash.command("deposit")
@click.argument("amount", type=float)
@pass_app
@_handle_errors
def cash_deposit(app: AppContext, amount: float) -> None:
    click.echo(f"Balance: {_money(app.cash.deposit(amount))}")


@cash.command("withdraw")
@click.argument("amount", type=float)
@pass_app
@_handle_errors
def cash_withdraw(app: AppContext, amount: float) -> None:
    click.echo(f"Balance: {_money(app.cash.withdraw(amount))}")


@cash.command("show")
@pass_app
def cash_show(app: AppContext) -> None:
    click.echo(f"Balance: {_money(app.cash.balance())}")


@main.command()
@pass_app
@_handle_errors
def catalog(app: AppContext) -> None:
    """List quotable assets and insurance products."""

    for asset_class in (AssetClass.STOCK, AssetClass.CRYPTO):
        click.echo(f"[{asset_class.value}]")
        for quote in app.oracle.fetch_prices(asset_class):
            click.echo(
                f"  {quote.id:<14} {quote.name:<28} {_money(quote.price):>14} "
                f"{quote.change_24h_pct:+.2f}%{' (catalog)' if quote.stale else ''}"
            )
    click.echo("[insurance]")
    for product in insurance_products():
        click.echo(
            f"  {product['id']:<20} {product['name']:<24} {product['provider']:<14} "
            f"{_money(product['premium'])} cover {product['coverage']}"
        )


@main.command("seed-demo")
@click.option("--force", is_flag=True, default=False, help="Seed even if the ledger has entries")
@pass_app
@_handle_errors
def seed_demo_command(app: AppContext, force: bool) -> None:
    """Record a sample portfolio."""

    summary = seed_demo(app.portfolio, force=force)
    if summary.skipped:
        click.echo("Ledger already has transactions; use --force to seed anyway.")
        return
    click.echo(f"Seeded {summary.count} transactions.")


@main.command()
@click.option(
    "--duration",
    type=float,
    default=0,
    help="Stop after this many seconds; runs until interrupted when 0",
)
@pass_app
@_handle_errors
def watch(app: AppContext, duration: float) -> None:
    """Keep prices and valuation fresh in the background."""

    app.portfolio.initialize()
    refresher = create_scheduler(app, auto_start=True)
    click.echo(
        f"Refreshing prices every {app.config.PRICE_REFRESH_SECONDS:g}s and "
        f"valuation every {app.config.VALUATION_REFRESH_SECONDS:g}s. Ctrl+C to stop."
    )
    deadline = time.monotonic() + duration if duration > 0 else None
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2 if deadline else 1.0)
    except KeyboardInterrupt:
        pass
    finally:
        refresher.stop()
    click.echo("Stopped.")


if __name__ == "__main__":  # pragma: no cover
    main()
