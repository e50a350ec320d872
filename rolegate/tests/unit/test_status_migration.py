from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

import pytest


_REVISION = Path(__file__).parents[2] / "persistence" / "alembic" / "versions" / "0002_status_registry.py"


class _RecordingOp:
    # Stands in for alembic.op; keeps (operation, first argument) in call order.
    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def __getattr__(self, name: str):
        def record(*args, **_kwargs) -> None:
            self.calls.append((name, args[0] if args else None))

        return record


def _load_revision() -> ModuleType:
    module_spec = importlib.util.spec_from_file_location("status_registry_revision", _REVISION)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def _executed(recorder: _RecordingOp) -> list[str]:
    return [" ".join(str(arg).split()) for name, arg in recorder.calls if name == "execute"]


def test_upgrade_installs_status_key_trigger(monkeypatch: pytest.MonkeyPatch) -> None:
    revision = _load_revision()
    recorder = _RecordingOp()
    monkeypatch.setattr(revision, "op", recorder)

    revision.upgrade()

    statements = _executed(recorder)
    function = next(sql for sql in statements if "FUNCTION set_status_key()" in sql)
    assert "IF NEW.status_key IS NULL OR TRIM(NEW.status_key) = ''" in function
    assert r"LOWER(REGEXP_REPLACE(TRIM(NEW.display_name), '\s+', '_', 'g'))" in function
    assert any(
        "BEFORE INSERT ON statuses FOR EACH ROW EXECUTE FUNCTION set_status_key()" in sql for sql in statements
    )
    # The trigger can only be attached once the table exists.
    first_execute = next(i for i, (name, _arg) in enumerate(recorder.calls) if name == "execute")
    assert recorder.calls.index(("create_table", "statuses")) < first_execute


def test_downgrade_drops_status_key_trigger_before_table(monkeypatch: pytest.MonkeyPatch) -> None:
    revision = _load_revision()
    recorder = _RecordingOp()
    monkeypatch.setattr(revision, "op", recorder)

    revision.downgrade()

    drop_trigger = recorder.calls.index(("execute", "DROP TRIGGER IF EXISTS trg_statuses_set_key ON statuses"))
    drop_function = recorder.calls.index(("execute", "DROP FUNCTION IF EXISTS set_status_key()"))
    assert drop_trigger < drop_function < recorder.calls.index(("drop_table", "statuses"))
