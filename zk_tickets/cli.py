"""
Command-line interface for zk-tickets.

Group state (registry + nullifier ledger) is kept in a CBOR snapshot file
between invocations.
"""

import functools
import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path

import click
import trio

from zk_tickets.membership.adapters.transparent import build_transparent_proof
from zk_tickets.membership.config import FIELD_MODULUS
from zk_tickets.membership.coordinator import VerificationCoordinator, compute_scope
from zk_tickets.membership.exceptions import TicketingError, ValidationError
from zk_tickets.membership.factory import get_verifier
from zk_tickets.membership.feature_flags import get_verifier_type
from zk_tickets.membership.identity import Identity
from zk_tickets.membership.state import load_state_file, save_state_file
from zk_tickets.membership.types import AccessRequest, decode_request, encode_request
from zk_tickets.service import AsyncVerificationCoordinator, serve_access_requests

DEFAULT_STATE_FILE = "zk_tickets_state.cbor"


class FieldElementParam(click.ParamType):
    """Decimal or 0x-prefixed hex integer inside the scalar field."""

    name = "field_element"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            number = value
        else:
            try:
                number = int(value, 0)
            except ValueError:
                self.fail(f"{value!r} is not an integer", param, ctx)
        if not 0 <= number < FIELD_MODULUS:
            self.fail(f"{value!r} is outside the scalar field", param, ctx)
        return number


FIELD_ELEMENT = FieldElementParam()


@contextmanager
def _domain_errors():
    try:
        yield
    except (TicketingError, ValueError) as e:
        click.echo(click.style(f"✗ {type(e).__name__}: {e}", fg="red"), err=True)
        sys.exit(1)


def _load_identity(path):
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"cannot read identity file {path}: {e}") from e
    try:
        return Identity.from_dict(data)
    except TypeError as e:
        raise ValidationError(str(e)) from e


def _state(ctx):
    return load_state_file(ctx.obj["state"])


def _save(ctx, registry, ledger):
    save_state_file(ctx.obj["state"], registry, ledger)


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False),
    default=DEFAULT_STATE_FILE,
    show_default=True,
    help="CBOR file holding groups and used nullifiers",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, state_path, verbose):
    """
    zk-tickets - anonymous one-time access for registered groups

    Members prove they belong to a frozen group and spend a one-time
    nullifier per context, without revealing which member they are.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["state"] = state_path


# ============================================================================
# MEMBER COMMANDS
# ============================================================================


@main.command()
@click.option(
    "--out",
    type=click.Path(dir_okay=False, writable=True),
    help="Write the identity secrets to this JSON file",
)
def identity(out):
    """Generate a new identity and print its commitment."""
    member = Identity.generate()
    if out:
        Path(out).write_text(json.dumps(member.to_dict(), indent=2), encoding="utf-8")
        click.echo(f"✓ Identity written to {out}")
    else:
        click.echo(json.dumps(member.to_dict(), indent=2))
    click.echo(f"commitment: {member.commitment}")


@main.command()
@click.option("--identity", "identity_path", required=True, type=click.Path(exists=True))
@click.option("--attribute", required=True, type=FIELD_ELEMENT)
def leaf(identity_path, attribute):
    """Print the group leaf for an identity and attribute."""
    with _domain_errors():
        member = _load_identity(identity_path)
        click.echo(member.leaf(attribute))


# ============================================================================
# ADMIN COMMANDS
# ============================================================================


@main.command("create-group")
@click.argument("context_id", type=FIELD_ELEMENT)
@click.option("--admin", required=True, help="Admin principal for the group")
@click.pass_context
def create_group(ctx, context_id, admin):
    """Register an open group for CONTEXT_ID."""
    with _domain_errors():
        registry, ledger = _state(ctx)
        group_id = registry.create_group(context_id, admin)
        _save(ctx, registry, ledger)
    click.echo(click.style(f"✓ Created group {group_id} for context {context_id}", fg="green"))


@main.command("add-member")
@click.argument("context_id", type=FIELD_ELEMENT)
@click.argument("leaves", nargs=-1, required=True, type=FIELD_ELEMENT)
@click.option("--admin", required=True, help="Caller principal")
@click.pass_context
def add_member(ctx, context_id, leaves, admin):
    """Append LEAVES to the open group of CONTEXT_ID."""
    with _domain_errors():
        registry, ledger = _state(ctx)
        indices = registry.add_members(context_id, leaves, caller=admin)
        _save(ctx, registry, ledger)
    for index, value in zip(indices, leaves):
        click.echo(f"✓ leaf #{index}: {value}")


@main.command()
@click.argument("context_id", type=FIELD_ELEMENT)
@click.option("--admin", required=True, help="Caller principal")
@click.pass_context
def freeze(ctx, context_id, admin):
    """Freeze the group of CONTEXT_ID and print its root."""
    with _domain_errors():
        registry, ledger = _state(ctx)
        root = registry.freeze_group(context_id, caller=admin)
        _save(ctx, registry, ledger)
    click.echo(click.style(f"✓ Frozen root: {root}", fg="green"))


# ============================================================================
# INSPECTION COMMANDS
# ============================================================================


@main.command()
@click.argument("context_id", type=FIELD_ELEMENT)
@click.option("--live", is_flag=True, help="Show the current root of an open group")
@click.pass_context
def root(ctx, context_id, live):
    """Print the active (frozen) root of CONTEXT_ID."""
    with _domain_errors():
        registry, _ = _state(ctx)
        if live:
            click.echo(registry.current_root(context_id))
        else:
            click.echo(registry.get_active_root(context_id))


@main.command()
@click.argument("context_id", type=FIELD_ELEMENT)
@click.pass_context
def info(ctx, context_id):
    """Show lifecycle, size and usage of CONTEXT_ID."""
    with _domain_errors():
        registry, ledger = _state(ctx)
        frozen = registry.is_frozen(context_id)
        summary = {
            "context_id": context_id,
            "group_id": registry.group_id_of(context_id),
            "admin": registry.admin_of(context_id),
            "state": registry.state_of(context_id).value,
            "size": registry.tree_size(context_id),
            "root": registry.current_root(context_id),
            "frozen_root": registry.get_active_root(context_id) if frozen else None,
            "used_nullifiers": ledger.used_count(context_id),
        }
    click.echo(json.dumps(summary, indent=2))


@main.command("merkle-proof")
@click.argument("context_id", type=FIELD_ELEMENT)
@click.argument("index", type=click.IntRange(min=0))
@click.option("--depth", type=click.IntRange(min=1), help="Padded proof length")
@click.pass_context
def merkle_proof(ctx, context_id, index, depth):
    """Print the inclusion proof for leaf INDEX as JSON."""
    with _domain_errors():
        registry, _ = _state(ctx)
        proof = registry.merkle_proof(context_id, index, depth)
    click.echo(json.dumps(proof.to_dict(), indent=2))


# ============================================================================
# ACCESS COMMANDS
# ============================================================================


@main.command()
@click.argument("context_id", type=FIELD_ELEMENT)
@click.option("--identity", "identity_path", required=True, type=click.Path(exists=True))
@click.option("--attribute", required=True, type=FIELD_ELEMENT)
@click.option("--signal", required=True, type=FIELD_ELEMENT)
@click.option("--coordinator-id", required=True, help="Identity of the verifying coordinator")
@click.option("--out", required=True, type=click.Path(dir_okay=False, writable=True))
@click.pass_context
def prove(ctx, context_id, identity_path, attribute, signal, coordinator_id, out):
    """
    Build a transparent access request for CONTEXT_ID.

    The transparent proof reveals the identity secrets to the verifier; it
    is meant for local testing.
    """
    with _domain_errors():
        registry, _ = _state(ctx)
        registry.get_active_root(context_id)
        member = _load_identity(identity_path)
        member_leaf = member.leaf(attribute, registry.hasher)
        leaves = registry.get_leaves(context_id)
        if member_leaf not in leaves:
            raise ValidationError("identity is not a member of this group")
        proof = registry.merkle_proof(context_id, leaves.index(member_leaf))
        scope = compute_scope(coordinator_id, context_id, registry.hasher)
        nullifier_hash, blob = build_transparent_proof(
            member,
            attribute,
            proof,
            group_id=registry.group_id_of(context_id),
            scope=scope,
            signal=signal,
            hasher=registry.hasher,
        )
        request = AccessRequest(
            context_id=context_id,
            signal=signal,
            nullifier_hash=nullifier_hash,
            proof=blob,
        )
        Path(out).write_bytes(encode_request(request))
    click.echo(f"✓ Access request written to {out}")
    click.echo(f"nullifier_hash: {nullifier_hash}")


def _build_coordinator(registry, ledger, coordinator_id, verifier_name, vk):
    name = get_verifier_type(verifier_name)
    if name == "snark":
        verifier = get_verifier(override=name, vk=vk)
    else:
        verifier = get_verifier(override=name, hasher=registry.hasher)
    return VerificationCoordinator(
        registry, ledger, verifier, coordinator_id=coordinator_id
    )


@main.command()
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--coordinator-id", required=True, help="Identity of this coordinator")
@click.option(
    "--verifier",
    "verifier_name",
    type=click.Choice(["transparent", "snark"]),
    help="Verifier backend (defaults to ZK_TICKETS_VERIFIER or transparent)",
)
@click.option("--vk", type=click.Path(exists=True, dir_okay=False), help="SNARK verification key")
@click.pass_context
def verify(ctx, request_file, coordinator_id, verifier_name, vk):
    """Verify an access request and record its nullifier."""
    with _domain_errors():
        registry, ledger = _state(ctx)
        request = decode_request(Path(request_file).read_bytes())
        coordinator = _build_coordinator(
            registry, ledger, coordinator_id, verifier_name, vk
        )
        granted = coordinator.verify_access(request)
        _save(ctx, registry, ledger)
    click.echo(
        click.style(
            f"✓ Access granted for context {granted.context_id} "
            f"(signal {granted.signal})",
            fg="green",
        )
    )


def _build_service(state_path, coordinator_id, verifier_name, vk):
    registry, ledger = load_state_file(state_path)
    coordinator = _build_coordinator(
        registry, ledger, coordinator_id, verifier_name, vk
    )
    persist = functools.partial(save_state_file, state_path, registry, ledger)
    return AsyncVerificationCoordinator(coordinator, persist=persist)


@main.command()
@click.option("--coordinator-id", required=True, help="Identity of this coordinator")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=7461, show_default=True, type=click.IntRange(0, 65535))
@click.option(
    "--verifier",
    "verifier_name",
    type=click.Choice(["transparent", "snark"]),
    help="Verifier backend (defaults to ZK_TICKETS_VERIFIER or transparent)",
)
@click.option("--vk", type=click.Path(exists=True, dir_okay=False), help="SNARK verification key")
@click.pass_context
def serve(ctx, coordinator_id, host, port, verifier_name, vk):
    """
    Serve framed access requests over TCP.

    Each grant is written back to the state file before it is reported; a
    request whose grant cannot be saved fails with PersistenceError.
    """
    with _domain_errors():
        service = _build_service(ctx.obj["state"], coordinator_id, verifier_name, vk)
    click.echo(f"Serving access requests on {host}:{port} (Ctrl+C to stop)")
    try:
        trio.run(serve_access_requests, service, port, host)
    except KeyboardInterrupt:
        click.echo("\nStopped")


if __name__ == "__main__":
    main()
