"""Tests for CLI subcommands."""

import json

import pytest
from conftest import ALICE, BOB, OWNER

from spigot.cli import CLIContext, _parse_uint, cmd_account_new, create_parser, run_cli
from spigot.config import SpigotConfig
from spigot.persistence import HostStore


class TestCreateParser:
    """Tests for argument parser creation."""

    def test_global_flags(self):
        """Global flags come before the subcommand."""
        args = create_parser().parse_args(["--json", "--dry-run", "--caller", ALICE, "drip"])

        assert args.json is True
        assert args.dry_run is True
        assert args.caller == ALICE
        assert args.command == "drip"

    def test_deploy_options(self):
        """Deploy takes optional cooldown, drip amount and endowment."""
        args = create_parser().parse_args(
            ["deploy", "--cooldown", "5", "--drip-amount", "50", "--endowment", "1000"]
        )

        assert args.cooldown == "5"
        assert args.drip_amount == "50"
        assert args.endowment == "1000"

    def test_owner_commands(self):
        """Owner commands take their positional argument."""
        parser = create_parser()

        assert parser.parse_args(["set-cooldown", "3"]).value == "3"
        assert parser.parse_args(["set-drip-amount", "7"]).value == "7"
        assert parser.parse_args(["transfer-ownership", BOB]).address == BOB

    def test_defaults(self):
        """Optional positionals have defaults."""
        parser = create_parser()

        assert parser.parse_args(["advance"]).blocks == "1"
        assert parser.parse_args(["balance"]).address is None
        assert parser.parse_args([]).command is None


class TestParseUint:
    """Tests for unsigned integer parsing."""

    def test_valid(self):
        assert _parse_uint("42", "amount") == 42

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid amount"):
            _parse_uint("abc", "amount")

    def test_negative(self):
        with pytest.raises(ValueError, match="must not be negative"):
            _parse_uint("-1", "amount")


class TestCLIContext:
    """Tests for CLIContext."""

    def test_caller_from_config(self, monkeypatch):
        """Caller falls back to SPIGOT_CALLER."""
        monkeypatch.setenv("SPIGOT_CALLER", ALICE.lower())
        ctx = CLIContext(SpigotConfig(_env_file=None))

        assert ctx.caller == ALICE

    def test_caller_flag_wins(self, monkeypatch):
        """--caller takes precedence over SPIGOT_CALLER."""
        monkeypatch.setenv("SPIGOT_CALLER", ALICE)
        ctx = CLIContext(SpigotConfig(_env_file=None), caller=BOB)

        assert ctx.caller == BOB

    def test_no_caller(self):
        """Missing caller raises a helpful error."""
        ctx = CLIContext(SpigotConfig(_env_file=None))

        with pytest.raises(ValueError, match="No caller configured"):
            _ = ctx.caller

    def test_output_text(self, capsys):
        """Text output prints nested values."""
        ctx = CLIContext(SpigotConfig(_env_file=None))
        ctx.output({"success": True, "events": [{"value": 1}]})

        out = capsys.readouterr().out
        assert "success: True" in out
        assert "events:" in out
        assert "value: 1" in out


@pytest.fixture
def state_file(tmp_path, monkeypatch):
    """Point the CLI at a temporary state file."""
    path = tmp_path / "state.json"
    monkeypatch.setenv("SPIGOT_STATE_FILE", str(path))
    return path


def cli(*argv):
    return run_cli(create_parser().parse_args(list(argv)))


def cli_json(capsys, *argv):
    """Run a command with --json and return its exit code and parsed output."""
    code = cli("--json", *argv)
    return code, json.loads(capsys.readouterr().out)


@pytest.fixture
def deployed(state_file, capsys):
    """State file holding an active faucet owned by OWNER with 1000 funding."""
    assert cli("mint", OWNER, "5000") == 0
    assert cli("--caller", OWNER, "deploy", "--cooldown", "10", "--drip-amount", "100",
               "--endowment", "1000") == 0
    assert cli("--caller", OWNER, "start-stop") == 0
    capsys.readouterr()
    return state_file


class TestAccountCommands:
    """Tests for development account commands."""

    def test_account_new(self, capsys):
        """account new prints a checksummed address."""
        ctx = CLIContext(SpigotConfig(_env_file=None), json_output=True)

        assert cmd_account_new(ctx) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["address"].startswith("0x")
        assert len(data["address"]) == 42

    def test_account_new_key_file(self, tmp_path, capsys):
        """account new --key-file writes the key with 600 permissions."""
        key_file = tmp_path / "keys" / "dev.key"
        ctx = CLIContext(SpigotConfig(_env_file=None), json_output=True)

        assert cmd_account_new(ctx, str(key_file)) == 0
        assert key_file.stat().st_mode & 0o777 == 0o600
        assert len(key_file.read_text().removeprefix("0x")) == 64

    def test_mint_and_balance(self, state_file, capsys):
        """Minted funds persist across invocations."""
        code, data = cli_json(capsys, "mint", ALICE, "250")
        assert code == 0
        assert data["balance"] == 250

        code, data = cli_json(capsys, "balance", ALICE)
        assert code == 0
        assert data == {"address": ALICE, "balance": 250}

    def test_mint_invalid_amount(self, state_file, capsys):
        """Invalid amounts fail with exit code 1."""
        code, data = cli_json(capsys, "mint", ALICE, "lots")

        assert code == 1
        assert "Invalid amount" in data["error"]


class TestDeployCommands:
    """Tests for deploy and fund."""

    def test_deploy(self, state_file, capsys):
        """deploy creates the faucet with the caller as owner."""
        cli("mint", OWNER, "5000")
        capsys.readouterr()

        code, data = cli_json(capsys, "--caller", OWNER, "deploy", "--endowment", "1000")

        assert code == 0
        assert data["owner"] == OWNER
        assert data["cooldown"] == 10
        assert data["drip_amount"] == 100
        assert data["balance"] == 1000
        assert HostStore(str(state_file)).load().faucet.active is False

    def test_deploy_without_caller(self, state_file, capsys):
        """deploy needs a caller."""
        code, data = cli_json(capsys, "deploy")

        assert code == 1
        assert "No caller configured" in data["error"]

    def test_deploy_twice(self, deployed, capsys):
        """A second deploy fails."""
        code, data = cli_json(capsys, "--caller", OWNER, "deploy")

        assert code == 1
        assert "already deployed" in data["error"]

    def test_fund(self, deployed, capsys):
        """fund moves value from the caller to the faucet."""
        code, data = cli_json(capsys, "--caller", OWNER, "fund", "500")

        assert code == 0
        assert data["balance"] == 1500

    def test_fund_insufficient(self, deployed, capsys):
        """Funding beyond the caller's balance aborts."""
        code, data = cli_json(capsys, "--caller", BOB, "fund", "1")

        assert code == 1
        assert "aborted" in data["error"]


class TestFaucetCommands:
    """Tests for faucet calls and queries."""

    def test_status(self, deployed, capsys):
        """status shows the faucet state."""
        code, data = cli_json(capsys, "status")

        assert code == 0
        assert data["owner"] == OWNER
        assert data["active"] is True
        assert data["balance"] == 1000

    def test_status_not_deployed(self, state_file, capsys):
        """status fails before deployment."""
        code, _ = cli_json(capsys, "status")

        assert code == 1

    def test_drip_cooldown_and_advance(self, deployed, capsys):
        """Drip, hit the cooldown, advance, drip again."""
        code, data = cli_json(capsys, "--caller", ALICE, "drip")
        assert code == 0
        assert data["events"] == [{"event": "Drip", "value": 100, "to": ALICE}]

        code, data = cli_json(capsys, "--caller", ALICE, "drip")
        assert code == 1
        assert data["error"] == "InCoolDown"

        code, data = cli_json(capsys, "advance", "10")
        assert code == 0
        assert data["block_number"] == 10

        code, _ = cli_json(capsys, "--caller", ALICE, "drip")
        assert code == 0

        code, data = cli_json(capsys, "--caller", ALICE, "last-request")
        assert data == {"caller": ALICE, "last_request_of": 10}

        code, data = cli_json(capsys, "events")
        assert len(data["events"]) == 2

    def test_dry_run_does_not_save(self, deployed, capsys):
        """--dry-run reports the outcome without saving."""
        code, data = cli_json(capsys, "--dry-run", "--caller", ALICE, "drip")

        assert code == 0
        assert data["dry_run"] is True
        record = HostStore(str(deployed)).load()
        assert record.faucet.last_request_of == {}
        assert record.balances.get(ALICE, 0) == 0

    def test_owner_commands(self, deployed, capsys):
        """Owner commands update the persisted faucet."""
        assert cli("--caller", OWNER, "set-cooldown", "3") == 0
        assert cli("--caller", OWNER, "set-drip-amount", "40") == 0
        assert cli("--caller", OWNER, "transfer-ownership", BOB) == 0
        capsys.readouterr()

        code, data = cli_json(capsys, "status")
        assert data["cooldown"] == 3
        assert data["drip_amount"] == 40
        assert data["owner"] == BOB

    def test_not_owner(self, deployed, capsys):
        """Non-owners are rejected with exit code 1."""
        code, data = cli_json(capsys, "--caller", ALICE, "start-stop")

        assert code == 1
        assert data["error"] == "NotOwner"

    def test_remove_ownership(self, deployed, capsys):
        """After renouncing, owner commands fail for everyone."""
        assert cli("--caller", OWNER, "remove-ownership") == 0
        capsys.readouterr()

        code, data = cli_json(capsys, "status")
        assert data["owner"] is None

        code, data = cli_json(capsys, "--caller", OWNER, "set-cooldown", "1")
        assert code == 1
        assert data["error"] == "NotOwner"

    def test_invalid_owner_argument(self, deployed, capsys):
        """Unparseable values fail before calling the faucet."""
        code, data = cli_json(capsys, "--caller", OWNER, "set-drip-amount", "many")

        assert code == 1
        assert "Invalid drip amount" in data["error"]


class TestRunCli:
    """Tests for run_cli dispatch."""

    def test_no_command(self, state_file):
        """No command signals help."""
        assert cli() == -1

    def test_account_without_subcommand(self, state_file, capsys):
        """account without a subcommand prints usage."""
        assert cli("account") == 1
        assert "Usage" in capsys.readouterr().err

    def test_config_error(self, monkeypatch, capsys):
        """Invalid configuration fails with exit code 1."""
        monkeypatch.setenv("SPIGOT_HTTP_PORT", "0")

        assert cli("--json", "status") == 1
        assert "Configuration error" in json.loads(capsys.readouterr().out)["error"]
