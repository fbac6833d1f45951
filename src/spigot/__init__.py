"""spigot - rate-limited native token faucet for deterministic contract hosts."""

__version__ = "0.1.0"
