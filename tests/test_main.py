"""Tests for the command-line entrypoint."""

import pytest
import uvicorn

from tests.conftest import FakeLedger
from tracechain_gateway.containers import AppContainer
from tracechain_gateway.main import main


def test_main_exits_when_ledger_unreachable(
    container: AppContainer, ledger: FakeLedger, monkeypatch: pytest.MonkeyPatch
) -> None:
    served: list[object] = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: served.append(app))
    ledger.reachable = False

    with pytest.raises(SystemExit) as exc_info:
        main(container)

    assert exc_info.value.code == 1
    assert served == []


def test_main_serves_after_successful_probe(
    container: AppContainer, ledger: FakeLedger, monkeypatch: pytest.MonkeyPatch
) -> None:
    served: list[dict[str, object]] = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: served.append(kwargs))

    main(container)

    assert served == [{"host": "0.0.0.0", "port": 3000}]
    assert (ledger.connects, ledger.pings, ledger.closes) == (1, 1, 1)
