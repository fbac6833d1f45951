"""Prometheus metrics for spigot.

Metrics:
- spigot_calls_total: Counter of faucet calls by operation and outcome
- spigot_tokens_dripped_total: Counter of tokens paid out by drips
- spigot_contract_balance: Gauge of the faucet contract balance
- spigot_block_height: Gauge of the host block height
- spigot_call_duration_seconds: Histogram of call execution time
"""

from prometheus_client import Counter, Gauge, Histogram

# Counters
CALLS = Counter(
    "spigot_calls_total",
    "Total number of faucet calls",
    ["operation", "status"],
)

TOKENS_DRIPPED = Counter(
    "spigot_tokens_dripped_total",
    "Total tokens paid out by drips",
)

# Gauges
CONTRACT_BALANCE = Gauge(
    "spigot_contract_balance",
    "Current faucet contract balance",
)

BLOCK_HEIGHT = Gauge(
    "spigot_block_height",
    "Current host block height",
)

# Histograms
CALL_DURATION = Histogram(
    "spigot_call_duration_seconds",
    "Faucet call execution duration",
    ["operation"],
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1),
)
