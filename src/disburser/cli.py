"""
Command-line interface for the Token Disburser.

Provides commands for running a disbursement and inspecting its inputs.
"""

import argparse
import logging
import sys
from typing import Optional

import structlog

from disburser import __version__
from disburser.config import DisburserConfig, NetworkType, set_config
from disburser.core.batch import CHUNK_SIZE, SettlementOutcome, TransactionResult, split_into_batches
from disburser.core.entry import InvalidEntry, load_entries, parse_address
from disburser.core.orchestrator import (
    BatchOrchestrator,
    DisbursementAborted,
    SettlementMismatch,
)
from disburser.core.units import format_units
from disburser.node.interface import ChainCallFailed
from disburser.node.web3_client import Web3ChainClient
from disburser.tx.signer import SignerError, TransactionSigner

GOOD = "\x1b[35;01mGOOD\x1b[0m"
FAIL = "\x1b[31;01mFAIL\x1b[0m"


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def _add_endpoint_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--testnet",
        action="store_true",
        help="Use testnet defaults (default: mainnet)",
    )
    parser.add_argument(
        "-a", "--rpc-addr",
        help="Optional, like: http://***:8545",
    )
    parser.add_argument(
        "-c", "--contract",
        help="Optional, like: 0x816d8...40C9a",
    )


def _add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: DISBURSER_LOG_LEVEL or WARNING)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="disburser",
        description="Batch token disbursement from a single funding account",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Run command
    run_parser = subparsers.add_parser("run", help="Disburse tokens to every entry")
    run_parser.add_argument(
        "-p", "--entries-path",
        required=True,
        help="A file containing who and how much to transfer",
    )
    run_parser.add_argument(
        "-K", "--privkey-path",
        required=True,
        help="A file containing your private key",
    )
    _add_endpoint_arguments(run_parser)
    _add_logging_arguments(run_parser)

    # Check command (parse only)
    check_parser = subparsers.add_parser("check", help="Validate an entry list without sending")
    check_parser.add_argument(
        "-p", "--entries-path",
        required=True,
        help="A file containing who and how much to transfer",
    )
    _add_logging_arguments(check_parser)

    # Balance command
    balance_parser = subparsers.add_parser("balance", help="Show token balances")
    balance_parser.add_argument(
        "addresses",
        nargs="+",
        help="Addresses to query",
    )
    _add_endpoint_arguments(balance_parser)
    _add_logging_arguments(balance_parser)

    return parser


def build_config(args: argparse.Namespace) -> DisburserConfig:
    """Create configuration from command-line arguments."""
    overrides = {
        "network": NetworkType.TESTNET if getattr(args, "testnet", False) else NetworkType.MAINNET,
    }
    if getattr(args, "rpc_addr", None):
        overrides["rpc_url"] = args.rpc_addr
    if getattr(args, "contract", None):
        overrides["contract_address"] = args.contract
    if getattr(args, "log_level", None):
        overrides["log_level"] = args.log_level
    if getattr(args, "log_json", False):
        overrides["log_json"] = True
    if getattr(args, "privkey_path", None):
        overrides["private_key_path"] = args.privkey_path

    config = DisburserConfig(**overrides)
    set_config(config)
    return config


def print_transaction(tx: TransactionResult) -> None:
    print(
        f"=> [ Entry-{tx.entry_index} ], Amount: {format_units(tx.amount)}, "
        f"SendTo: {tx.recipient}, Nonce: {tx.nonce}, TxHash: {tx.tx_hash}"
    )


def print_balance(nth: int, address: str, balance: int) -> None:
    print(f"=> [ Balance-{nth} ] Address: {address}, Balance: {format_units(balance)}")


def print_outcome(outcome: SettlementOutcome) -> None:
    status = GOOD if outcome.is_settled else FAIL
    print(
        f"=> Result: {status}, Amount: {format_units(outcome.expected_amount)}, "
        f"BalanceDiff: {format_units(outcome.observed_delta)}, "
        f"NewBalance: {format_units(outcome.final_balance)}, "
        f"OldBalance: {format_units(outcome.pre_balance)}, "
        f"Receiver: {outcome.recipient}"
    )


def run_disbursement(args: argparse.Namespace, config: DisburserConfig) -> int:
    """Run a full disbursement."""

    entries = load_entries(args.entries_path)

    signer = TransactionSigner(config)
    signer.load_from_config()

    print(f"Token Disburser v{__version__}")
    print(f"RPC: {config.rpc_endpoint}")
    print(f"Contract: {config.token_contract}")
    print(f"Sending from: {signer.address}")
    print(f"Entries: {len(entries)}")
    print()

    with Web3ChainClient(config) as client:
        orchestrator = BatchOrchestrator(client, config)
        orchestrator.on_chunk_started(
            lambda batch: print(f"Chunk index(start from 0): {batch.index}")
        )
        orchestrator.on_balance_captured(print_balance)
        orchestrator.on_transaction(print_transaction)
        orchestrator.on_outcome(print_outcome)

        result = orchestrator.run(entries, signer)

    print()
    print(f"Transactions sent: {len(result.transactions)}")
    result.raise_for_status()
    print("All entries settled.")
    return 0


def check_entries(args: argparse.Namespace, config: Optional[DisburserConfig] = None) -> int:
    """Parse an entry list and print a summary."""
    entries = load_entries(args.entries_path)
    batches = split_into_batches(entries)
    recipients = {e.recipient for e in entries}

    print(f"Entries: {len(entries)}")
    print(f"Distinct recipients: {len(recipients)}")
    print(f"Chunks of {CHUNK_SIZE}: {len(batches)}")
    print(f"Total amount: {format_units(sum(e.amount for e in entries))}")
    return 0


def show_balances(args: argparse.Namespace, config: DisburserConfig) -> int:
    """Print the token balance of each address."""
    addresses = [parse_address(a.lower()) for a in args.addresses]

    with Web3ChainClient(config) as client:
        for address in addresses:
            print(f"{address}: {format_units(client.query_balance(address))}")
    return 0


def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "run": run_disbursement,
        "check": check_entries,
        "balance": show_balances,
    }

    try:
        config = build_config(args)
        setup_logging(config.log_level, config.log_json)
        code = commands[args.command](args, config)
    except (InvalidEntry, SignerError, FileNotFoundError, ChainCallFailed, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except DisbursementAborted as e:
        print(f"Aborted: {e}", file=sys.stderr)
        sys.exit(1)
    except SettlementMismatch as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
