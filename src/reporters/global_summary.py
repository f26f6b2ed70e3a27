"""
Global summary reporter.

Renders the position manager's ledger: contract parameters, aggregate
totals and the global collateralization ratio, every sponsor's position,
and how many of each event the contract has emitted.
"""

from collections import Counter
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..position_manager import ZERO, PositionManager
from ..utils.helpers import format_amount


class GlobalSummaryReporter:
    """
    Usage:
        reporter = GlobalSummaryReporter(manager)
        reporter.render()
    """

    def __init__(self, manager: PositionManager, console: Optional[Console] = None):
        self.manager = manager
        self.console = console or Console()

    def summary(self) -> Dict[str, Any]:
        """Aggregate numbers behind the summary table."""
        manager = self.manager
        return {
            "contract_state": manager.contract_state.value,
            "price_identifier": manager.config.price_identifier,
            "expiration_timestamp": manager.expiration_timestamp,
            "sponsors": len(manager.sponsors),
            "total_position_collateral": manager.total_position_collateral(),
            "total_tokens_outstanding": manager.total_tokens_outstanding(),
            "global_collateralization_ratio": manager.global_collateralization_ratio(),
            "cumulative_fee_multiplier": manager.cumulative_fee_multiplier,
            "settlement_price": manager.settlement_price,
        }

    def sponsor_rows(self) -> List[Dict[str, Any]]:
        rows = []
        for sponsor in self.manager.sponsors:
            view = self.manager.get_position(sponsor)
            rows.append({
                "sponsor": sponsor,
                "collateral": view.collateral,
                "tokens_outstanding": view.tokens_outstanding,
                "collateralization_ratio": view.collateralization_ratio,
                "withdrawal_request": view.withdrawal_request.amount if view.withdrawal_request else ZERO,
                "transfer_pending": view.transfer_request is not None,
            })
        return rows

    def event_counts(self) -> Dict[str, int]:
        return dict(Counter(self.manager.events.names()))

    # ─────────────────────────────────────────────────────────────────────────
    # Tables
    # ─────────────────────────────────────────────────────────────────────────

    def summary_table(self) -> Table:
        data = self.summary()
        collateral = self.manager.collateral_token.symbol
        synthetic = self.manager.synthetic_token.symbol

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Metric", style="dim")
        table.add_column("Value", style="bold")
        table.add_row("Contract state", data["contract_state"])
        table.add_row("Price identifier", data["price_identifier"])
        table.add_row("Expiration", str(data["expiration_timestamp"]))
        table.add_row("Sponsors", str(data["sponsors"]))
        table.add_row("Total collateral", f"{format_amount(data['total_position_collateral'])} {collateral}")
        table.add_row("Tokens outstanding", f"{format_amount(data['total_tokens_outstanding'])} {synthetic}")
        table.add_row("Global collateralization ratio", format_amount(data["global_collateralization_ratio"], 4))
        table.add_row("Cumulative fee multiplier", str(data["cumulative_fee_multiplier"]))
        price = data["settlement_price"]
        table.add_row("Settlement price", str(price) if price is not None else "-")
        return table

    def sponsor_table(self) -> Table:
        table = Table(title="Sponsors")
        table.add_column("Sponsor")
        table.add_column("Collateral", justify="right")
        table.add_column("Tokens", justify="right")
        table.add_column("CR", justify="right")
        table.add_column("Pending withdrawal", justify="right")
        table.add_column("Transfer pending")
        for row in self.sponsor_rows():
            ratio = row["collateralization_ratio"]
            table.add_row(
                row["sponsor"],
                format_amount(row["collateral"]),
                format_amount(row["tokens_outstanding"]),
                format_amount(ratio, 4) if ratio is not None else "-",
                format_amount(row["withdrawal_request"]),
                "yes" if row["transfer_pending"] else "no",
            )
        return table

    def event_table(self) -> Table:
        table = Table(title="Events")
        table.add_column("Event")
        table.add_column("Count", justify="right")
        for name, count in sorted(self.event_counts().items()):
            table.add_row(name, str(count))
        return table

    def render(self) -> None:
        """Print the summary, sponsor and event tables."""
        self.console.print(Panel(
            self.summary_table(),
            title=f"[bold]{self.manager.synthetic_token.name}[/]",
            border_style="cyan",
        ))
        self.console.print(self.sponsor_table())
        self.console.print(self.event_table())
