from __future__ import annotations

from datetime import datetime, timezone

import pytest

from clawfleet.adapters.instance import FileInstanceRepository
from clawfleet.app.checkpoint import CheckpointCoordinator, extract_cid
from clawfleet.domain.errors import ActionFailed, Unreachable
from clawfleet.ports.transport import CommandResult
from tests._fakes import CID, OTHER_CID, FakeTransport, checkpoint_output, register


def _coordinator(repository: FileInstanceRepository, transport: FakeTransport) -> CheckpointCoordinator:
    return CheckpointCoordinator(repository, transport, clock=lambda: datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))


def test_cid_from_output_is_returned_verbatim_and_persisted(repository: FileInstanceRepository) -> None:
    register(repository, last_checkpoint_cid=OTHER_CID)
    body = f"Pinning to IPFS...\nCheckpoint complete: {CID}\n"
    transport = FakeTransport({"checkpoint.quick": checkpoint_output(principal="openclaw", body=body)})

    result = _coordinator(repository, transport).checkpoint("alpha")

    assert result.cid == CID
    assert result.principal == "openclaw"
    assert result.source == "output"
    assert result.warning is None
    stored = repository.get("alpha")
    assert stored.last_checkpoint_cid == CID
    assert stored.extra["last_checkpoint_at"] == "2026-10-18T12:00:00Z"
    assert "MODE=checkpoint\n" in transport.script_for("checkpoint.quick")


def test_full_checkpoint_uses_full_mode(repository: FileInstanceRepository) -> None:
    register(repository)
    transport = FakeTransport({"checkpoint.full": checkpoint_output(body=f"cid={CID}")})

    result = _coordinator(repository, transport).checkpoint("alpha", full=True)

    assert result.full
    assert result.to_dict()["type"] == "full"
    assert "MODE=full-checkpoint" in transport.script_for("checkpoint.full")


def test_fallback_record_supplies_identifier(repository: FileInstanceRepository) -> None:
    register(repository)
    transport = FakeTransport({"checkpoint.quick": checkpoint_output(body="done", fallback=OTHER_CID)})

    result = _coordinator(repository, transport).checkpoint("alpha")

    assert result.cid == OTHER_CID
    assert result.source == "last-checkpoint.json"


def test_missing_identifier_warns_and_leaves_metadata_untouched(repository: FileInstanceRepository) -> None:
    register(repository, last_checkpoint_cid=OTHER_CID)
    before = (repository.root / "alpha" / "metadata.json").read_text("utf-8")
    transport = FakeTransport({"checkpoint.quick": checkpoint_output(body="uploaded\nok")})

    result = _coordinator(repository, transport).checkpoint("alpha")

    assert result.cid is None
    assert result.warning == "identifier not captured"
    assert result.output_tail[-1] == "ok"
    assert (repository.root / "alpha" / "metadata.json").read_text("utf-8") == before


def test_non_zero_exit_raises_action_failed(repository: FileInstanceRepository) -> None:
    register(repository, last_checkpoint_cid=OTHER_CID)
    body = "Error: PINATA_JWT not configured"
    transport = FakeTransport({"checkpoint.quick": checkpoint_output(body=body, exit_code=2, fallback=CID)})

    with pytest.raises(ActionFailed) as excinfo:
        _coordinator(repository, transport).checkpoint("alpha")

    assert excinfo.value.step == "checkpoint"
    assert "exited with 2" in excinfo.value.reason
    assert "PINATA_JWT" in excinfo.value.reason
    assert repository.get("alpha").last_checkpoint_cid == OTHER_CID


def test_missing_exit_marker_raises(repository: FileInstanceRepository) -> None:
    register(repository)
    transport = FakeTransport({"checkpoint.quick": CommandResult(stdout="__PRINCIPAL__root\nkilled\n", exit_status=137)})
    with pytest.raises(ActionFailed, match="did not report an exit status"):
        _coordinator(repository, transport).checkpoint("alpha")


def test_unreachable_propagates(repository: FileInstanceRepository) -> None:
    register(repository)
    with pytest.raises(Unreachable):
        _coordinator(repository, FakeTransport(open_error=Unreachable("alpha", "no route to host"))).checkpoint("alpha")


def test_extract_cid_ignores_lookalikes() -> None:
    assert extract_cid("QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG") is None
    assert extract_cid(f"saved {CID}.") == CID
