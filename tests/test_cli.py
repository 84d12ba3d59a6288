"""
CLI tests for the full group lifecycle.

Each test keeps its state snapshot under tmp_path so invocations share the
registry and nullifier ledger the same way separate shell commands would.
"""

import json
import shutil
from pathlib import Path

import pytest
from click.testing import CliRunner

from zk_tickets import cli
from zk_tickets.membership.identity import Identity
from zk_tickets.membership.state import load_state_file
from zk_tickets.membership.types import decode_request
from zk_tickets.service import decode_response, handle_access_request_bytes

CONTEXT = "42"
ADMIN = "organizer"
COORDINATOR = "door-1"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace(tmp_path):
    member = Identity(nullifier_secret=1001, trapdoor_secret=2002)
    identity_path = tmp_path / "member.json"
    identity_path.write_text(json.dumps(member.to_dict()), encoding="utf-8")
    return {
        "state": str(tmp_path / "state.cbor"),
        "identity": str(identity_path),
        "request": str(tmp_path / "request.cbor"),
        "member": member,
    }


def invoke(runner, workspace, *args):
    return runner.invoke(cli.main, ["--state", workspace["state"], *args])


def _frozen_group(runner, workspace):
    member_leaf = workspace["member"].leaf(7)
    assert invoke(runner, workspace, "create-group", CONTEXT, "--admin", ADMIN).exit_code == 0
    result = invoke(
        runner, workspace, "add-member", CONTEXT, str(member_leaf), "12345", "--admin", ADMIN
    )
    assert result.exit_code == 0, result.output
    result = invoke(runner, workspace, "freeze", CONTEXT, "--admin", ADMIN)
    assert result.exit_code == 0, result.output
    return member_leaf


def test_identity_prints_commitment(runner, tmp_path):
    out = tmp_path / "id.json"
    result = runner.invoke(cli.main, ["identity", "--out", str(out)])

    assert result.exit_code == 0
    member = Identity.from_dict(json.loads(out.read_text(encoding="utf-8")))
    assert f"commitment: {member.commitment}" in result.output


def test_leaf_command(runner, workspace):
    result = invoke(
        runner, workspace, "leaf", "--identity", workspace["identity"], "--attribute", "7"
    )
    assert result.exit_code == 0
    assert result.output.strip() == str(workspace["member"].leaf(7))


def test_full_lifecycle(runner, workspace):
    _frozen_group(runner, workspace)

    result = invoke(
        runner,
        workspace,
        "prove",
        CONTEXT,
        "--identity",
        workspace["identity"],
        "--attribute",
        "7",
        "--signal",
        "0x10",
        "--coordinator-id",
        COORDINATOR,
        "--out",
        workspace["request"],
    )
    assert result.exit_code == 0, result.output
    assert "nullifier_hash:" in result.output

    verify_args = ("verify", workspace["request"], "--coordinator-id", COORDINATOR)
    first = invoke(runner, workspace, *verify_args)
    assert first.exit_code == 0, first.output
    assert "Access granted for context 42 (signal 16)" in first.output

    second = invoke(runner, workspace, *verify_args)
    assert second.exit_code == 1
    assert "✗ DuplicateUseError" in second.output

    info = invoke(runner, workspace, "info", CONTEXT)
    assert json.loads(info.output)["used_nullifiers"] == 1


def test_wrong_coordinator_rejected(runner, workspace):
    _frozen_group(runner, workspace)
    invoke(
        runner,
        workspace,
        "prove",
        CONTEXT,
        "--identity",
        workspace["identity"],
        "--attribute",
        "7",
        "--signal",
        "1",
        "--coordinator-id",
        COORDINATOR,
        "--out",
        workspace["request"],
    )

    result = invoke(
        runner, workspace, "verify", workspace["request"], "--coordinator-id", "door-2"
    )
    assert result.exit_code == 1
    assert "✗ InvalidProofError" in result.output


def test_prove_requires_membership(runner, workspace):
    _frozen_group(runner, workspace)
    result = invoke(
        runner,
        workspace,
        "prove",
        CONTEXT,
        "--identity",
        workspace["identity"],
        "--attribute",
        "8",
        "--signal",
        "1",
        "--coordinator-id",
        COORDINATOR,
        "--out",
        workspace["request"],
    )
    assert result.exit_code == 1
    assert "not a member" in result.output


def test_root_and_info(runner, workspace):
    invoke(runner, workspace, "create-group", CONTEXT, "--admin", ADMIN)

    not_ready = invoke(runner, workspace, "root", CONTEXT)
    assert not_ready.exit_code == 1
    assert "✗ GroupNotReadyError" in not_ready.output

    live = invoke(runner, workspace, "root", CONTEXT, "--live")
    assert live.exit_code == 0
    assert live.output.strip() == "0"

    invoke(runner, workspace, "add-member", CONTEXT, "5", "--admin", ADMIN)
    freeze = invoke(runner, workspace, "freeze", CONTEXT, "--admin", ADMIN)
    assert freeze.exit_code == 0
    # a single-leaf tree has the leaf as its root
    assert invoke(runner, workspace, "root", CONTEXT).output.strip() == "5"

    summary = json.loads(invoke(runner, workspace, "info", CONTEXT).output)
    assert summary["state"] == "frozen"
    assert summary["size"] == 1
    assert summary["frozen_root"] == 5
    assert summary["admin"] == ADMIN


def test_admin_checks(runner, workspace):
    invoke(runner, workspace, "create-group", CONTEXT, "--admin", ADMIN)

    result = invoke(runner, workspace, "add-member", CONTEXT, "5", "--admin", "mallory")
    assert result.exit_code == 1
    assert "✗ UnauthorizedError" in result.output

    again = invoke(runner, workspace, "create-group", CONTEXT, "--admin", ADMIN)
    assert again.exit_code == 1
    assert "✗ AlreadyInitializedError" in again.output


def test_merkle_proof_command(runner, workspace):
    member_leaf = _frozen_group(runner, workspace)
    result = invoke(runner, workspace, "merkle-proof", CONTEXT, "0", "--depth", "4")
    assert result.exit_code == 0, result.output

    proof = json.loads(result.output)
    assert proof["leaf"] == member_leaf
    assert proof["index"] == 0
    assert len(proof["siblings"]) == 4
    assert proof["siblings"][0] == 12345


def test_rejects_out_of_field_arguments(runner, workspace):
    result = invoke(runner, workspace, "create-group", "-1", "--admin", ADMIN)
    assert result.exit_code == 2


def _prove(runner, workspace, signal="1"):
    result = invoke(
        runner,
        workspace,
        "prove",
        CONTEXT,
        "--identity",
        workspace["identity"],
        "--attribute",
        "7",
        "--signal",
        signal,
        "--coordinator-id",
        COORDINATOR,
        "--out",
        workspace["request"],
    )
    assert result.exit_code == 0, result.output
    return Path(workspace["request"]).read_bytes()


async def _submit(service, blob):
    return decode_response(await handle_access_request_bytes(blob, service))


@pytest.mark.trio
async def test_serve_persists_each_grant(runner, workspace):
    _frozen_group(runner, workspace)
    blob = _prove(runner, workspace)

    service = cli._build_service(workspace["state"], COORDINATOR, None, None)
    assert (await _submit(service, blob)).ok is True

    _, ledger = load_state_file(workspace["state"])
    assert ledger.is_used(42, decode_request(blob).nullifier_hash) is True

    restarted = cli._build_service(workspace["state"], COORDINATOR, None, None)
    resp = await _submit(restarted, blob)
    assert resp.ok is False
    assert resp.err.startswith("DuplicateUseError")


@pytest.mark.trio
async def test_serve_failed_save_is_not_a_grant(runner, workspace, tmp_path):
    _frozen_group(runner, workspace)
    blob = _prove(runner, workspace)

    state = Path(workspace["state"])
    backup = tmp_path / "last-good.cbor"
    shutil.copy(state, backup)

    service = cli._build_service(str(state), COORDINATOR, None, None)
    state.unlink()
    state.mkdir()

    resp = await _submit(service, blob)
    assert resp.ok is False
    assert resp.err.startswith("PersistenceError")

    # restart from the last state that reached disk: the one grant happens now
    restarted = cli._build_service(str(backup), COORDINATOR, None, None)
    assert (await _submit(restarted, blob)).ok is True
    assert (await _submit(restarted, blob)).ok is False


def test_verify_reports_failed_save(runner, workspace):
    _frozen_group(runner, workspace)
    _prove(runner, workspace)
    state = Path(workspace["state"])
    # a directory where the temp file should go makes the write fail
    Path(str(state) + ".tmp").mkdir()

    result = invoke(
        runner, workspace, "verify", workspace["request"], "--coordinator-id", COORDINATOR
    )
    assert result.exit_code == 1
    assert "✗ PersistenceError" in result.output
    assert "Access granted" not in result.output
