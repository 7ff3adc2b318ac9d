from types import SimpleNamespace

import pytest

from cli import main as cli_main
from protocol.types.common import OpType
from protocol.types.operation import Operation


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body
        self.text = str(body)

    def json(self):
        return self._body


def test_to_units():
    assert cli_main.to_units("1") == 1_000_000
    assert cli_main.to_units("12.5") == 12_500_000
    assert cli_main.from_units(2_500_000) == "2.5 sst"


@pytest.mark.parametrize("amount", ["ten", "nan", "NaN", "inf", "-Infinity"])
def test_to_units_rejects_garbage(amount, capsys):
    with pytest.raises(SystemExit):
        cli_main.to_units(amount)
    assert "invalid amount" in capsys.readouterr().out


def test_to_units_rejects_sub_unit_precision(capsys):
    with pytest.raises(SystemExit):
        cli_main.to_units("0.0000001")
    assert "more than 6 decimal places" in capsys.readouterr().out

    assert cli_main.to_units("0.000001") == 1
    assert cli_main.to_units("1.500000") == 1_500_000


def test_broadcast_posts_to_simulate(monkeypatch, capsys):
    calls = []

    def fake_post(url, json):
        calls.append((url, json))
        return FakeResponse(200, {"op_type": "STAKE", "owner": "alice"})

    monkeypatch.setattr(cli_main.requests, "post", fake_post)
    args = SimpleNamespace(node="http://node:8000", simulate=True)
    op = Operation(op_type=OpType.STAKE, owner="alice", amount=5)

    cli_main.broadcast_op(args, op)

    url, body = calls[0]
    assert url == "http://node:8000/operation/simulate"
    assert body["op_type"] == "STAKE"
    assert body["amount"] == 5
    assert "Simulation only" in capsys.readouterr().out


def test_broadcast_reports_engine_error(monkeypatch, capsys):
    monkeypatch.setattr(
        cli_main.requests, "post",
        lambda url, json: FakeResponse(400, {"code": "TokensLocked", "message": "Tokens are locked"}),
    )
    args = SimpleNamespace(node="http://node:8000", simulate=False)

    with pytest.raises(SystemExit):
        cli_main.broadcast_op(args, Operation(op_type=OpType.UNSTAKE, owner="alice", amount=5))
    assert "Error [TokensLocked]" in capsys.readouterr().out
