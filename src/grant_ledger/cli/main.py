"""
Grant Ledger CLI

Command-line interface for a grant ledger stored in one SQLite file. The
underlying token balances live in the same file (SQLiteTokenStore).

Usage:
    grant-ledger init --db grants.db --administrator admin --lock-days 365
    grant-ledger mint --to admin --amount 100000
    grant-ledger fund --as admin --amount 100000
    grant-ledger allocate --as admin --to alice --amount 10000
    grant-ledger claim --as alice --amount 5000
    grant-ledger claim --as alice --all
    grant-ledger status
"""

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from typing_extensions import Annotated

from grant_ledger.grant.invariants import validate_grant_terms
from grant_ledger.grant.models import GrantTerms
from grant_ledger.health_server import initialize_health_server, run_health_server
from grant_ledger.kernel.errors import GrantLedgerError
from grant_ledger.kernel.logging import configure_logging, is_production
from grant_ledger.kernel.metrics import start_metrics_server
from grant_ledger.ledger import GrantLedger
from grant_ledger.token.store import DEFAULT_DECIMALS, SQLiteTokenStore

# Logs go to stderr; stdout carries command output
configure_logging(json_output=is_production(), log_level="WARNING")

app = typer.Typer(
    name="grant-ledger",
    help="Grant Ledger - time-locked one-shot token grants",
    add_completion=False,
)

DEFAULT_DB = Path(".grant-ledger.db")

DbOption = Annotated[
    Path,
    typer.Option("--db", envvar="GRANT_LEDGER_DB", help="Database path"),
]
CallerOption = Annotated[
    str,
    typer.Option("--as", envvar="GRANT_LEDGER_ACTOR", help="Calling account"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


@contextmanager
def ledger_errors() -> Iterator[None]:
    """Turn rejected operations (and invalid amounts) into "Error: ..." on stderr, exit 1"""
    try:
        yield
    except (GrantLedgerError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def get_ledger(db: Path) -> GrantLedger:
    """Open the ledger and its token store"""
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'grant-ledger init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    with ledger_errors():
        return GrantLedger(db, SQLiteTokenStore(db))


def remove_database(db: Path) -> None:
    """Delete a ledger database together with its WAL side files"""
    for path in (db, db.with_name(db.name + "-wal"), db.with_name(db.name + "-shm")):
        path.unlink(missing_ok=True)


# Initialization


@app.command()
def init(
    administrator: Annotated[
        str, typer.Option("--administrator", help="Administrator account")
    ],
    lock_days: Annotated[
        float, typer.Option("--lock-days", help="Days until grants become claimable")
    ] = 365,
    retrieval_days: Annotated[
        float,
        typer.Option("--retrieval-days", help="Days until unallocated funds are retrievable"),
    ] = 5 * 365,
    deployer: Annotated[
        Optional[str],
        typer.Option("--deployer", help="Deploying account (defaults to administrator)"),
    ] = None,
    name: Annotated[str, typer.Option("--name", help="Grant token name")] = "Token Grant",
    symbol: Annotated[str, typer.Option("--symbol", help="Grant token symbol")] = "GRANT",
    token_name: Annotated[
        str, typer.Option("--token-name", help="Underlying token name")
    ] = "Token",
    token_symbol: Annotated[
        str, typer.Option("--token-symbol", help="Underlying token symbol")
    ] = "TKN",
    decimals: Annotated[
        int, typer.Option("--decimals", help="Underlying token decimals")
    ] = DEFAULT_DECIMALS,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Create a new grant ledger database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    with ledger_errors():
        terms = GrantTerms.from_days(lock_days, retrieval_days, name=name, symbol=symbol)
        validate_grant_terms(terms)
        try:
            tokens = SQLiteTokenStore(
                db, name=token_name, symbol=token_symbol, decimals=decimals
            )
            ledger = GrantLedger(
                db, tokens, deployer=deployer, administrator=administrator, terms=terms
            )
        except Exception:
            # A failed init leaves no database behind
            remove_database(db)
            raise

    typer.echo(f"✓ Initialized grant ledger: {db}")
    typer.echo(f"  Administrator: {ledger.administrator}")
    typer.echo(f"  Ledger account: {ledger.ledger_account}")
    typer.echo(f"  Claims unlock: {ledger.claim_unlock_time().isoformat()}")
    typer.echo(f"  Retrieval unlocks: {ledger.retrieval_unlock_time().isoformat()}")


# Token store


@app.command()
def mint(
    to: Annotated[str, typer.Option("--to", help="Account receiving new tokens")],
    amount: Annotated[int, typer.Option("--amount", help="Amount to mint")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Mint underlying tokens into an account"""
    ledger = get_ledger(db)
    with ledger_errors():
        ledger.token_store.mint(to, amount)

    typer.echo(f"✓ Minted {amount} to {to}")
    typer.echo(f"  Balance: {ledger.token_store.balance_of(to)}")


@app.command()
def fund(
    caller: CallerOption,
    amount: Annotated[int, typer.Option("--amount", help="Amount to deposit")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Deposit underlying tokens into the ledger account"""
    ledger = get_ledger(db)
    with ledger_errors():
        ledger.token_store.transfer(caller, ledger.ledger_account, amount)

    typer.echo(f"✓ Funded ledger with {amount} from {caller}")
    typer.echo(f"  Backing: {ledger.backing()}")
    typer.echo(f"  Available: {ledger.available_balance()}")


# Grant operations


@app.command()
def allocate(
    caller: CallerOption,
    to: Annotated[str, typer.Option("--to", help="Recipient account")],
    amount: Annotated[int, typer.Option("--amount", help="Grant amount")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Allocate a grant to a recipient (administrator only)"""
    ledger = get_ledger(db)
    with ledger_errors():
        record = ledger.allocate(caller, to, amount)

    typer.echo(f"✓ Allocated {record.allocated_amount} to {record.account}")
    typer.echo(f"  Locked balance: {ledger.locked_balance()}")


@app.command()
def claim(
    caller: CallerOption,
    amount: Annotated[
        Optional[int], typer.Option("--amount", help="Amount to claim")
    ] = None,
    claim_everything: Annotated[
        bool, typer.Option("--all", help="Claim the whole remaining entitlement")
    ] = False,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Claim granted tokens"""
    if (amount is None) == (not claim_everything):
        typer.echo("Error: Pass exactly one of --amount or --all", err=True)
        raise typer.Exit(1)

    ledger = get_ledger(db)
    with ledger_errors():
        if claim_everything:
            claimed = ledger.claim_all(caller)
        else:
            claimed = ledger.claim(caller, amount)

    typer.echo(f"✓ Claimed {claimed}")
    typer.echo(f"  Remaining entitlement: {ledger.entitlement_of(caller)}")
    typer.echo(f"  Token balance: {ledger.token_store.balance_of(caller)}")


@app.command()
def pause(caller: CallerOption, db: DbOption = DEFAULT_DB) -> None:
    """Pause distribution (administrator only)"""
    ledger = get_ledger(db)
    with ledger_errors():
        ledger.pause(caller)
    typer.echo("✓ Distribution paused")


@app.command()
def resume(caller: CallerOption, db: DbOption = DEFAULT_DB) -> None:
    """Resume distribution (administrator only)"""
    ledger = get_ledger(db)
    with ledger_errors():
        ledger.resume(caller)
    typer.echo("✓ Distribution resumed")


@app.command()
def retrieve(caller: CallerOption, db: DbOption = DEFAULT_DB) -> None:
    """Return unallocated backing to the administrator"""
    ledger = get_ledger(db)
    with ledger_errors():
        amount = ledger.retrieve_remaining(caller)
    typer.echo(f"✓ Retrieved {amount} to {ledger.administrator}")


# Queries


@app.command()
def status(json_output: JsonOption = False, db: DbOption = DEFAULT_DB) -> None:
    """Show the ledger summary"""
    ledger = get_ledger(db)
    summary = ledger.summary()

    if json_output:
        typer.echo(json.dumps(summary, indent=2, default=str))
        return

    typer.echo(f"Grant ledger: {summary['name']} ({summary['symbol']})")
    typer.echo(f"  Administrator: {summary['administrator']}")
    typer.echo(f"  Ledger account: {summary['ledger_account']}")
    typer.echo(
        f"  Distribution: {'active' if summary['distribution_active'] else 'paused'}"
    )
    typer.echo(f"  Claims unlock: {summary['claim_unlock_time']}")
    typer.echo(f"  Retrieval unlocks: {summary['retrieval_unlock_time']}")
    typer.echo(f"  Backing: {summary['backing']}")
    typer.echo(f"  Locked: {summary['locked_balance']}")
    typer.echo(f"  Available: {summary['available_balance']}")
    typer.echo(f"  Accounts: {summary['accounts']}")


@app.command()
def account(
    name: Annotated[str, typer.Option("--account", help="Account to show")],
    json_output: JsonOption = False,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Show an account's grant record and history"""
    ledger = get_ledger(db)
    record = ledger.get_account(name)
    if record is None:
        typer.echo(f"Error: No grant allocated to {name}", err=True)
        raise typer.Exit(1)

    history = ledger.account_history(name)
    if json_output:
        typer.echo(
            json.dumps(
                {"account": record.model_dump(mode="json"), "history": history},
                indent=2,
                default=str,
            )
        )
        return

    typer.echo(f"Account: {record.account}")
    typer.echo(f"  Allocated: {record.allocated_amount}")
    typer.echo(f"  Entitlement: {record.entitlement}")
    typer.echo(f"  Claimed: {record.claimed_amount}")
    typer.echo(f"  Fully claimed: {'yes' if record.claimed_fully else 'no'}")
    for entry in history:
        typer.echo(f"  - {entry['kind']} {entry['amount']} (v{entry['version']})")


@app.command()
def balance(
    name: Annotated[str, typer.Option("--account", help="Account to show")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Show token balance and remaining entitlement of an account"""
    ledger = get_ledger(db)
    typer.echo(f"Account: {name}")
    typer.echo(f"  Token balance: {ledger.token_store.balance_of(name)}")
    typer.echo(f"  Entitlement: {ledger.entitlement_of(name)}")


@app.command()
def history(
    event_type: Annotated[
        Optional[str], typer.Option("--type", help="Filter by event type")
    ] = None,
    limit: Annotated[
        Optional[int], typer.Option("--limit", help="Maximum number of events")
    ] = None,
    json_output: JsonOption = False,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Show the ledger's event history"""
    ledger = get_ledger(db)
    events = ledger.get_events(event_type=event_type, limit=limit)

    if json_output:
        typer.echo(
            json.dumps([event.model_dump(mode="json") for event in events], indent=2)
        )
        return

    typer.echo(f"Events: {len(events)}")
    for event in events:
        typer.echo(
            f"  v{event.version} {event.occurred_at.isoformat()} "
            f"{event.event_type} by {event.actor_id} {json.dumps(event.payload)}"
        )


@app.command()
def audit(db: DbOption = DEFAULT_DB) -> None:
    """Check the conservation invariants (exit 1 on violation)"""
    ledger = get_ledger(db)
    violations = ledger.audit()

    if not violations:
        typer.echo("✓ No invariant violations")
        return

    typer.echo(f"Invariant violations: {len(violations)}", err=True)
    for event in violations:
        typer.echo(f"  {event.event_type}: {json.dumps(event.payload)}", err=True)
    raise typer.Exit(1)


# Operations


@app.command()
def serve(
    port: Annotated[int, typer.Option("--port", help="Health server port")] = 8080,
    metrics_port: Annotated[
        int, typer.Option("--metrics-port", help="Prometheus metrics port")
    ] = 9090,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Serve health checks and Prometheus metrics"""
    ledger = get_ledger(db)
    initialize_health_server(db, ledger)
    start_metrics_server(metrics_port)
    typer.echo(f"✓ Metrics on :{metrics_port}, health checks on :{port}")
    run_health_server(port=port)


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
