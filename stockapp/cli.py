import click

from .models import User
from .services import borrowing, overview
from .services.record_store import RecordStore


def _store_for(username: str) -> RecordStore:
    user = User.query.filter_by(username=username).first()
    if user is None:
        click.echo(f"Unknown user: {username}")
        raise SystemExit(1)
    return RecordStore(user.id)


def register_cli(app):
    @app.cli.command("overdue-borrows")
    @click.argument("username")
    def overdue_borrows(username: str) -> None:
        """List borrowed items past their expected return date."""
        records = borrowing.overdue_records(_store_for(username))
        if not records:
            click.echo("No overdue borrows.")
            return
        for record in records:
            click.echo(
                f"{record.expected_return_date.isoformat()}  {record.borrower_name}: "
                f"{record.quantity} x {record.item_name}"
            )

    @app.cli.command("low-stock")
    @click.argument("username")
    @click.option("--threshold", type=int, default=None, help="Override LOW_STOCK_THRESHOLD.")
    def low_stock(username: str, threshold) -> None:
        """Show stock items running low."""
        if threshold is None:
            threshold = app.config.get("LOW_STOCK_THRESHOLD", 5)
        summary = overview.dashboard_summary(
            _store_for(username), low_stock_threshold=threshold, preview_limit=100
        )
        click.echo(f"{summary['low_stock_items']} items below {threshold}:")
        for item in summary["low_stock_preview"]:
            click.echo(f"  {item['item_name']}: {item['available_quantity']} available")
