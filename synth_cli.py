#!/usr/bin/env python3
"""
SYNTH - Synthetic Position Manager CLI

Non-interactive commands over an in-memory deployment:
  python synth_cli.py demo                              # Scripted sponsor lifecycle + report
  python synth_cli.py demo --deployment eth_btc_local   # Same, using a deployment YAML
  python synth_cli.py report --deployment eth_btc_local # Deployment parameters + empty ledger summary
  python synth_cli.py claims --input window.json        # Build a merkle claims file
  python synth_cli.py config                            # Show and validate environment config

This is a shell: it parses arguments, calls into src/ and prints results.
"""

import argparse
import sys
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.config import PositionManagerConfig, get_config
from src.config.constants import SECONDS_PER_DAY, SECONDS_PER_HOUR
from src.config.deployment import DeploymentConfig, list_deployments, load_deployment_config
from src.merkle_distributor.claims_file import create_claims_for_window
from src.monitors import ContractProps, PositionEventMonitor
from src.position_manager import LocalDeployment, ManualClock, PositionManagerError, deploy_local, fp
from src.reporters import GlobalSummaryReporter
from src.utils.logger import setup_logger

console = Console()

DEMO_LIFETIME = 30 * SECONDS_PER_DAY


def parse_cli_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for synth_cli."""
    parser = argparse.ArgumentParser(
        description="SYNTH - Synthetic Position Manager CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python synth_cli.py demo
  python synth_cli.py report --deployment eth_btc_local
  python synth_cli.py claims --input configs/windows/example_window.json --output-dir proof-files
        """
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARNING)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    demo_parser = subparsers.add_parser("demo", help="Run a scripted sponsor lifecycle")
    demo_parser.add_argument("--deployment", help="Deployment YAML path or name in configs/deployments")

    report_parser = subparsers.add_parser("report", help="Summarize a deployment")
    report_parser.add_argument("--deployment", required=True, help="Deployment YAML path or name")

    claims_parser = subparsers.add_parser("claims", help="Create a claims file for a reward window")
    claims_parser.add_argument("-i", "--input", required=True, help="Window JSON containing the recipients payout")
    claims_parser.add_argument("-o", "--output-dir", default=None, help="Directory for the claims file")

    subparsers.add_parser("config", help="Show and validate the environment configuration")

    return parser.parse_args(argv)


# ─────────────────────────────────────────────────────────────────────────────
# Deployments
# ─────────────────────────────────────────────────────────────────────────────

def _deploy(deployment: Optional[DeploymentConfig]) -> LocalDeployment:
    """Deploy locally with the clock one demo lifetime before expiration."""
    if deployment is None:
        clock = ManualClock(now=1_700_000_000)
        config = PositionManagerConfig(
            expiration_timestamp=clock.now + DEMO_LIFETIME,
            synthetic_name="Synthetic ETH/BTC",
        )
        return deploy_local(config, fee_config=get_config().fees, clock=clock)

    expiration = deployment.position_manager.expiration_timestamp
    clock = ManualClock(now=max(expiration - DEMO_LIFETIME, 0))
    return deploy_local(deployment.position_manager, fee_config=deployment.fees, clock=clock)


def _deployment_table(deployment: DeploymentConfig) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="bold")
    for key, value in deployment.to_dict().items():
        table.add_row(key, str(value))
    return table


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────

def run_demo_lifecycle(local: LocalDeployment) -> None:
    """
    Two sponsors through create, deposit, slow withdrawal, transfer,
    redeem, fees, expiry and settlement.
    """
    manager = local.manager
    clock = local.clock
    admin = manager.config.financial_contracts_admin
    event_monitor = PositionEventMonitor(manager.events, ContractProps.from_manager(manager))

    for sponsor in ("alice", "bob"):
        local.fund(sponsor, fp(10_000))

    manager.create("alice", fp(150), fp(100))
    manager.create("bob", fp(300), fp(150))
    manager.deposit("alice", fp(50))
    event_monitor.check_for_new_events()

    manager.request_withdrawal("bob", fp(60))
    clock.advance(manager.withdrawal_liveness)
    manager.withdraw_passed_request("bob")

    manager.request_transfer_position("alice")
    clock.advance(manager.withdrawal_liveness)
    manager.transfer_position_passed_request("alice", "carol")
    event_monitor.check_for_new_events()

    manager.redeem("bob", fp(50))
    clock.advance(SECONDS_PER_HOUR)
    manager.pay_regular_fees(caller=admin)

    console.print(Panel("[bold cyan]Before expiry[/]", border_style="cyan"))
    GlobalSummaryReporter(manager, console).render()

    clock.set(manager.expiration_timestamp)
    manager.expire(admin)
    local.push_settlement_price(fp("1.1"))
    for holder in ("alice", "bob", "carol"):
        manager.settle_expired(holder)
    manager.trim_excess()
    event_monitor.check_for_new_events()

    console.print(Panel("[bold cyan]After settlement[/]", border_style="cyan"))
    GlobalSummaryReporter(manager, console).render()


def handle_demo(args) -> int:
    """Handle `demo` command."""
    try:
        deployment = load_deployment_config(args.deployment) if args.deployment else None
        local = _deploy(deployment)
        run_demo_lifecycle(local)
    except (FileNotFoundError, ValueError, PositionManagerError) as e:
        console.print(f"\n[bold red]Demo failed:[/] {e}")
        return 1
    console.print("\n[bold green]OK demo complete[/]")
    return 0


def handle_report(args) -> int:
    """Handle `report` command."""
    try:
        deployment = load_deployment_config(args.deployment)
        local = _deploy(deployment)
    except FileNotFoundError as e:
        console.print(f"[bold red]{e}[/]")
        console.print(f"[dim]Available: {', '.join(list_deployments()) or '(none)'}[/]")
        return 1
    except (ValueError, PositionManagerError) as e:
        console.print(f"[bold red]Invalid deployment:[/] {e}")
        return 1

    console.print(Panel(_deployment_table(deployment), title=f"[bold]{deployment.name}[/]", border_style="blue"))
    GlobalSummaryReporter(local.manager, console).render()
    return 0


def handle_claims(args) -> int:
    """Handle `claims` command."""
    try:
        out_path = create_claims_for_window(args.input, args.output_dir)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Claims creation failed:[/] {e}")
        return 1
    console.print(f"[bold green]OK[/] claims file written to {out_path}")
    return 0


def handle_config(args) -> int:
    """Handle `config` command."""
    config = get_config()
    console.print(Panel(config.summary(), title="[bold]CONFIG[/]", border_style="blue"))
    ok, messages = config.validate()
    for msg in messages:
        console.print(f"  [{'yellow' if ok else 'red'}]• {msg}[/]")
    return 0 if ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    # Parse CLI arguments FIRST (before any config or logging)
    args = parse_cli_args(argv)

    config = get_config()
    setup_logger(log_dir=config.log.log_dir, log_level=args.log_level or config.log.level)

    handlers = {
        "demo": handle_demo,
        "report": handle_report,
        "claims": handle_claims,
        "config": handle_config,
    }
    handler = handlers.get(args.command)
    if handler is None:
        console.print("[yellow]Usage: synth_cli.py {demo|report|claims|config} --help[/]")
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
