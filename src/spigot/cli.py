"""CLI subcommands for spigot.

Provides command-line interface for:
- Development accounts (new, mint, balance)
- Faucet deployment and funding
- Faucet queries (status, last-request, events)
- Faucet calls (drip and owner administration)
- Host control (advance blocks)

Host state is loaded from and saved to SPIGOT_STATE_FILE around every command.
"""

import argparse
import json
import os
import sys
import tempfile
from pathlib import Path

from eth_account import Account

from spigot.config import SpigotConfig
from spigot.persistence import HostStore
from spigot.runtime import CallResult, ContractHost
from spigot.types import AccountId, to_account_id


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="spigot",
        description="spigot - rate-limited native token faucet",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Global flags
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would happen without saving any state",
    )
    parser.add_argument(
        "--caller",
        metavar="ADDRESS",
        help="Account making the call (default: SPIGOT_CALLER)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Account subcommand
    account_parser = subparsers.add_parser("account", help="Development accounts")
    account_sub = account_parser.add_subparsers(dest="account_command")
    new_parser = account_sub.add_parser("new", help="Create a new account address")
    new_parser.add_argument("--key-file", metavar="FILE", help="Save the private key to FILE")

    # Ledger
    mint_parser = subparsers.add_parser("mint", help="Credit new funds to an account")
    mint_parser.add_argument("address", type=str, help="Account to credit")
    mint_parser.add_argument("amount", type=str, help="Amount to mint")

    balance_parser = subparsers.add_parser("balance", help="Show an account balance")
    balance_parser.add_argument(
        "address", type=str, nargs="?", default=None, help="Account (default: the contract)"
    )

    # Deployment
    deploy_parser = subparsers.add_parser("deploy", help="Deploy the faucet")
    deploy_parser.add_argument("--cooldown", type=str, default=None, help="Blocks between drips")
    deploy_parser.add_argument("--drip-amount", type=str, default=None, help="Amount per drip")
    deploy_parser.add_argument(
        "--endowment", type=str, default="0", help="Initial funding from the caller"
    )

    fund_parser = subparsers.add_parser("fund", help="Send funds from the caller to the faucet")
    fund_parser.add_argument("amount", type=str, help="Amount to send")

    # Queries
    subparsers.add_parser("status", help="Show faucet state")
    subparsers.add_parser("last-request", help="Show the caller's last drip block")
    subparsers.add_parser("events", help="List emitted Drip events")

    # Faucet calls
    subparsers.add_parser("drip", help="Request a drip for the caller")

    set_cooldown_parser = subparsers.add_parser("set-cooldown", help="Set the cooldown (owner)")
    set_cooldown_parser.add_argument("value", type=str, help="New cooldown in blocks")

    subparsers.add_parser("start-stop", help="Toggle the faucet on or off (owner)")
    subparsers.add_parser("remove-ownership", help="Renounce ownership forever (owner)")

    set_amount_parser = subparsers.add_parser("set-drip-amount", help="Set the drip amount (owner)")
    set_amount_parser.add_argument("value", type=str, help="New drip amount")

    transfer_parser = subparsers.add_parser(
        "transfer-ownership", help="Hand ownership to another account (owner)"
    )
    transfer_parser.add_argument("address", type=str, help="New owner")

    # Host
    advance_parser = subparsers.add_parser("advance", help="Advance the block height")
    advance_parser.add_argument(
        "blocks", type=str, nargs="?", default="1", help="Number of blocks (default: 1)"
    )

    subparsers.add_parser("serve", help="Start the spigot HTTP service")

    return parser


def _parse_uint(value: str, name: str) -> int:
    """Parse an unsigned integer argument."""
    try:
        number = int(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value}") from None
    if number < 0:
        raise ValueError(f"{name} must not be negative")
    return number


class CLIContext:
    """Shared context for CLI commands."""

    def __init__(
        self,
        config: SpigotConfig,
        dry_run: bool = False,
        json_output: bool = False,
        caller: str | None = None,
    ):
        self.config = config
        self.dry_run = dry_run
        self.json_output = json_output
        self._caller = caller or config.caller
        self._store = HostStore(config.state_file)
        self._host: ContractHost | None = None

    @property
    def caller(self) -> AccountId:
        """Get the calling account."""
        if not self._caller:
            raise ValueError("No caller configured. Use --caller or set SPIGOT_CALLER")
        return to_account_id(self._caller)

    @property
    def host(self) -> ContractHost:
        """Get the contract host (lazy loaded from the state file)."""
        if self._host is None:
            self._host = ContractHost.from_record(
                self._store.load(),
                max_key_size=self.config.storage_max_key_size,
                max_value_size=self.config.storage_max_value_size,
            )
        return self._host

    def save(self) -> None:
        """Persist host state unless this is a dry run."""
        if self.dry_run or self._host is None:
            return
        self._store.save(self._host.to_record())

    def output(self, data: dict) -> None:
        """Output data in the appropriate format."""
        if self.json_output:
            print(json.dumps(data, indent=2))
        else:
            self._print_formatted(data)

    def _print_formatted(self, data: dict, indent: int = 0) -> None:
        """Print data in human-readable format."""
        prefix = "  " * indent
        for key, value in data.items():
            if isinstance(value, dict):
                print(f"{prefix}{key}:")
                self._print_formatted(value, indent + 1)
            elif isinstance(value, list):
                print(f"{prefix}{key}:")
                for item in value:
                    if isinstance(item, dict):
                        self._print_formatted(item, indent + 1)
                    else:
                        print(f"{prefix}  - {item}")
            else:
                print(f"{prefix}{key}: {value}")


# Account commands


def cmd_account_new(ctx: CLIContext, key_file: str | None = None) -> int:
    """Create a new account and optionally save its private key."""
    try:
        account = Account.create()
        data = {"address": account.address}

        if key_file:
            key_path = Path(key_file)
            key_path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=key_path.parent, prefix=".spigot-key-")
            try:
                os.fchmod(fd, 0o600)
                with os.fdopen(fd, "w") as f:
                    f.write(account.key.hex())
                os.replace(temp_path, key_path)
            except Exception:
                Path(temp_path).unlink(missing_ok=True)
                raise
            data["key_file"] = str(key_path.absolute())

        ctx.output(data)
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def cmd_mint(ctx: CLIContext, address: str, amount_str: str) -> int:
    """Credit new funds to an account."""
    try:
        amount = _parse_uint(amount_str, "amount")
        address = to_account_id(address)
        ctx.host.mint(address, amount)
        ctx.save()
        ctx.output(
            {
                "success": True,
                "action": "mint",
                "address": address,
                "amount": amount,
                "balance": ctx.host.ledger.balance_of(address),
                **({"dry_run": True} if ctx.dry_run else {}),
            }
        )
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def cmd_balance(ctx: CLIContext, address: str | None = None) -> int:
    """Show an account balance, defaulting to the faucet contract."""
    try:
        account = to_account_id(address) if address else ctx.host.contract
        ctx.output({"address": account, "balance": ctx.host.ledger.balance_of(account)})
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


# Deployment commands


def cmd_deploy(
    ctx: CLIContext,
    cooldown_str: str | None = None,
    drip_amount_str: str | None = None,
    endowment_str: str = "0",
) -> int:
    """Deploy the faucet with the caller as owner."""
    try:
        cooldown = (
            _parse_uint(cooldown_str, "cooldown")
            if cooldown_str is not None
            else ctx.config.default_cooldown
        )
        drip_amount = (
            _parse_uint(drip_amount_str, "drip amount")
            if drip_amount_str is not None
            else ctx.config.default_drip_amount
        )
        endowment = _parse_uint(endowment_str, "endowment")

        contract = ctx.host.deploy(ctx.caller, cooldown, drip_amount, endowment=endowment)
        ctx.save()
        ctx.output(
            {
                "success": True,
                "action": "deploy",
                "contract": contract,
                "owner": ctx.caller,
                "cooldown": cooldown,
                "drip_amount": drip_amount,
                "balance": ctx.host.contract_balance,
                **({"dry_run": True} if ctx.dry_run else {}),
            }
        )
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def cmd_fund(ctx: CLIContext, amount_str: str) -> int:
    """Send funds from the caller to the faucet."""
    try:
        amount = _parse_uint(amount_str, "amount")
        ctx.host.fund(ctx.caller, amount)
        ctx.save()
        ctx.output(
            {
                "success": True,
                "action": "fund",
                "amount": amount,
                "balance": ctx.host.contract_balance,
                **({"dry_run": True} if ctx.dry_run else {}),
            }
        )
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


# Query commands


def cmd_status(ctx: CLIContext) -> int:
    """Show faucet state."""
    try:
        host = ctx.host
        faucet = host.faucet
        ctx.output(
            {
                "contract": host.contract,
                "owner": faucet.get_owner(),
                "active": faucet.is_active(),
                "cooldown": faucet.get_cooldown(),
                "drip_amount": faucet.get_drip_amount(),
                "balance": host.contract_balance,
                "block_number": host.block_number,
            }
        )
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def cmd_last_request(ctx: CLIContext) -> int:
    """Show the caller's last drip block."""
    try:
        ctx.output(
            {
                "caller": ctx.caller,
                "last_request_of": ctx.host.query(ctx.caller, "last_request_of"),
            }
        )
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def cmd_events(ctx: CLIContext) -> int:
    """List emitted Drip events."""
    try:
        ctx.output({"events": [event.to_dict() for event in ctx.host.events.events]})
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


# Faucet calls


def _output_call(ctx: CLIContext, result: CallResult) -> int:
    ctx.output(result.to_dict())
    return 0 if result.success else 1


def cmd_call(ctx: CLIContext, operation: str, *args) -> int:
    """Run one faucet operation as the caller."""
    try:
        result = ctx.host.call(ctx.caller, operation, *args, dry_run=ctx.dry_run)
        if result.success:
            ctx.save()
        return _output_call(ctx, result)
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def cmd_advance(ctx: CLIContext, blocks_str: str = "1") -> int:
    """Advance the block height."""
    try:
        blocks = _parse_uint(blocks_str, "block count")
        new_height = ctx.host.advance_blocks(blocks)
        ctx.save()
        ctx.output(
            {
                "block_number": new_height,
                **({"dry_run": True} if ctx.dry_run else {}),
            }
        )
        return 0
    except Exception as e:
        ctx.output({"error": str(e)})
        return 1


def run_cli(args: argparse.Namespace) -> int:
    """Execute CLI command based on parsed arguments.

    Returns
    -------
    int
        Exit code: 0 for success, positive for error, -1 signals caller
        to show help (no CLI command specified).
    """
    try:
        config = SpigotConfig()
    except Exception as e:
        if args.json:
            print(json.dumps({"error": f"Configuration error: {e}"}))
        else:
            print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    ctx = CLIContext(config, dry_run=args.dry_run, json_output=args.json, caller=args.caller)

    if args.command == "account":
        if args.account_command == "new":
            return cmd_account_new(ctx, args.key_file)
        print("Usage: spigot account new [--key-file FILE]", file=sys.stderr)
        return 1

    elif args.command == "mint":
        return cmd_mint(ctx, args.address, args.amount)
    elif args.command == "balance":
        return cmd_balance(ctx, args.address)
    elif args.command == "deploy":
        return cmd_deploy(ctx, args.cooldown, args.drip_amount, args.endowment)
    elif args.command == "fund":
        return cmd_fund(ctx, args.amount)
    elif args.command == "status":
        return cmd_status(ctx)
    elif args.command == "last-request":
        return cmd_last_request(ctx)
    elif args.command == "events":
        return cmd_events(ctx)
    elif args.command == "drip":
        return cmd_call(ctx, "drip")
    elif args.command == "set-cooldown":
        try:
            value = _parse_uint(args.value, "cooldown")
        except ValueError as e:
            ctx.output({"error": str(e)})
            return 1
        return cmd_call(ctx, "set_cooldown", value)
    elif args.command == "start-stop":
        return cmd_call(ctx, "start_stop")
    elif args.command == "remove-ownership":
        return cmd_call(ctx, "remove_ownership")
    elif args.command == "set-drip-amount":
        try:
            value = _parse_uint(args.value, "drip amount")
        except ValueError as e:
            ctx.output({"error": str(e)})
            return 1
        return cmd_call(ctx, "set_drip_amount", value)
    elif args.command == "transfer-ownership":
        return cmd_call(ctx, "transfer_ownership", args.address)
    elif args.command == "advance":
        return cmd_advance(ctx, args.blocks)

    else:
        # No subcommand - show help
        return -1
