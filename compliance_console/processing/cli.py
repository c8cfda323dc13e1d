"""
Processing-status monitor CLI commands.

Provides a command-line interface for checking a transaction's
processing status once or watching it until it finishes.
"""

import asyncio
import sys
from datetime import datetime
from typing import Optional

from compliance_console.core.config import get_settings
from compliance_console.core.logging import configure_logging
from compliance_console.processing.clients import (
    StatusClientError,
    create_status_client,
)
from compliance_console.processing.config import MonitorOptions, get_monitor_config
from compliance_console.processing.models import StatusSnapshot
from compliance_console.processing.notifications import Notification
from compliance_console.processing.poller import ProcessingStatusPoller, StartResult


class ConsoleNotificationSink:
    """Prints notifications as they arrive."""

    def notify(self, notification: Notification) -> None:
        marker = "!!" if notification.severity == "destructive" else "--"
        print(f"{marker} {notification.title}: {notification.description}")


def format_timestamp(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "N/A"


def print_snapshot(snapshot: StatusSnapshot):
    """Pretty print a processing status snapshot."""
    print("\n=== Transaction Processing Status ===\n")
    print(f"Status: {snapshot.processing_state.label}")
    print(f"Transaction ID: {snapshot.transaction_reference or 'N/A'}")
    if snapshot.transaction_id is not None:
        print(f"Internal ID: #{snapshot.transaction_id}")
    print(f"Processing Started: {format_timestamp(snapshot.started_at)}")
    print(f"Processing Completed: {format_timestamp(snapshot.completed_at)}")

    print("\n--- Rule Evaluation ---")
    print(f"Total Rules Evaluated: {snapshot.total_evaluated}")
    print(f"Rules Matched: {snapshot.matched_count}")
    print(f"Rules Passed: {snapshot.passed_count}")

    if snapshot.matched_rules:
        print(f"\nMatched Rules ({len(snapshot.matched_rules)}):")
        for rule in snapshot.matched_rules:
            print(f"  [MATCH] {rule.rule_name} ({format_timestamp(rule.executed_at)})")
    if snapshot.passed_rules:
        print(f"\nPassed Rules ({len(snapshot.passed_rules)}):")
        for rule in snapshot.passed_rules:
            print(f"  [pass]  {rule.rule_name} ({format_timestamp(rule.executed_at)})")
    print()


def print_session_summary(status: dict):
    """Pretty print the outcome of a monitoring session."""
    print("\n=== Monitoring Session ===\n")
    print(f"Transaction: {status['target_id']}")
    print(f"Outcome: {status['last_outcome'] or 'unknown'}")
    print(f"Attempts: {status['attempts']} / {status['max_attempts']}")
    if status["last_error"]:
        print(f"Error: {status['last_error']}")
    last = status.get("last_session")
    if last:
        print(f"Duration: {last['duration_seconds']:.2f}s")
        if last["ticks_skipped"]:
            print(f"Skipped Ticks: {last['ticks_skipped']}")
    print()


async def check_command(transaction_id: str) -> int:
    """Query the processing status once."""
    config = get_monitor_config()
    client = create_status_client(config.status_client)
    try:
        snapshot = await client.get_processing_status(transaction_id)
    except StatusClientError as e:
        print(f"\nStatus check failed: {str(e)}")
        return 1
    finally:
        await client.aclose()

    print_snapshot(snapshot)
    return 0


async def watch_command(
    transaction_id: str,
    poll_interval_ms: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> int:
    """Monitor a transaction until it completes, fails or times out."""
    finished = asyncio.Event()

    poller = ProcessingStatusPoller(notifier=ConsoleNotificationSink())
    options = MonitorOptions(
        poll_interval_ms=poll_interval_ms,
        max_attempts=max_attempts,
        on_complete=lambda snapshot: finished.set(),
        on_error=lambda message: finished.set(),
    )

    async with poller:
        result = await poller.start_monitoring(transaction_id, options)
        if result != StartResult.STARTED:
            print(f"Monitoring not started: {result.value}")
            return 1

        print(
            f"Monitoring transaction #{transaction_id} "
            f"every {options.poll_interval_ms or poller.config.poll_interval_ms} ms "
            f"(Ctrl+C to stop)\n"
        )
        await finished.wait()
        status = poller.get_status()

    if poller.last_snapshot:
        print_snapshot(poller.last_snapshot)
    print_session_summary(status)
    return 0 if status["last_outcome"] == "completed" else 1


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 3:
        print("Usage: python -m compliance_console.processing.cli <command> <transaction_id> [options]")
        print("\nCommands:")
        print("  check <id>                                Query processing status once")
        print("  watch <id> [interval_ms] [max_attempts]   Monitor until a terminal outcome")
        print("\nExamples:")
        print("  python -m compliance_console.processing.cli check 123")
        print("  python -m compliance_console.processing.cli watch 123 2000 150")
        print("\nSet STATUS_CLIENT_TYPE=mock to use the simulated status service.")
        return 1

    configure_logging(get_settings().ENV)
    command = sys.argv[1]
    transaction_id = sys.argv[2]

    try:
        if command == "check":
            return asyncio.run(check_command(transaction_id))
        elif command == "watch":
            interval = int(sys.argv[3]) if len(sys.argv) > 3 else None
            attempts = int(sys.argv[4]) if len(sys.argv) > 4 else None
            return asyncio.run(watch_command(transaction_id, interval, attempts))
        else:
            print(f"Unknown command: {command}")
            return 1
    except KeyboardInterrupt:
        print("\nMonitoring stopped.")
        return 130
    except ValueError as e:
        print(f"Invalid argument: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
