"""
Main entrypoint for vaultledger.

What it does:
- Loads runtime settings from `config/config.yaml` and environment overrides.
- Starts the Prometheus metrics server.
- Builds a VaultLedger with a recording payout, journals every notification to
  JSONL, and runs a short scripted session of deposits and withdrawals,
  including one rejected call per caller-facing error kind.
- Logs the final snapshot and reconciliation, writes parquet outputs and exits.

Where it is used:
- Invoked by `python -m vaultledger.main` or the `vaultledger-demo` script.

Key related modules:
- `vaultledger.config.loader.Settings` and `load_settings`
- `vaultledger.ledger.VaultLedger`
- `vaultledger.logs.activity_log`
"""
import json
import logging
import os
import time

from vaultledger.config.loader import load_settings
from vaultledger.ledger import UNIT, LedgerError, RecordingPayout, VaultLedger
from vaultledger.logs.activity_log import journal_listener, log_ledger_event
from vaultledger.metrics.core import start_server_safe


def run_session(ledger: VaultLedger) -> None:
    """Scripted session: two depositors, payouts, and each rejection kind."""
    half = UNIT // 2
    steps = [
        ("deposit", "alice", 4 * UNIT),
        ("deposit", "bob", 2 * UNIT),
        ("withdraw", "alice", UNIT),
        ("withdraw", "bob", half),
        ("withdraw", "alice", 0),                # zero_amount
        ("withdraw", "alice", UNIT + 1),         # limit_exceeded
        ("withdraw", "carol", half),             # insufficient_balance
        ("deposit", "carol", ledger.capacity),   # capacity_exceeded
    ]
    for op, account, amount in steps:
        try:
            if op == "deposit":
                balance = ledger.deposit(account, amount)
            else:
                balance = ledger.withdraw(account, amount)
            log_ledger_event(op, ledger.name, account, amount, extra={"balance": str(balance)})
        except LedgerError as e:
            logging.info(f"{op} {account} {amount} rejected: {e.to_dict()}")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    settings = load_settings(os.getenv("VAULT_CONFIG", "config/config.yaml"))
    logging.info(f"Vault: {settings.vault.name}, capacity: {settings.vault.capacity}")

    start_server_safe(settings.metrics.port)

    payout = RecordingPayout()
    ledger = VaultLedger(settings.vault.capacity, payout=payout, name=settings.vault.name)
    ledger.subscribe(journal_listener(settings.journal.path))

    run_session(ledger)

    snap = ledger.snapshot()
    logging.info(f"snapshot: {snap.model_dump_json()}")
    logging.info(f"reconcile: {json.dumps(ledger.reconcile())}")
    logging.info(f"payouts sent: {payout.total_sent()}")
    ledger.write_parquet(settings.journal.parquet_dir)
    logging.info("vault demo complete")

    # Optional: keep the metrics server alive for inspection
    hold = int(os.getenv("HOLD_METRICS_SECONDS", "0"))
    if hold > 0:
        logging.info(f"holding metrics server for {hold}s before exit")
        time.sleep(hold)


if __name__ == "__main__":
    main()
