"""Tests for the mtd command line, driven through CliRunner."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner, Result

from mtd.cli import main
from mtd.config import CONFIG_FILE, MtdConfig, save_config
from mtd.models import TdList, Weekday
from mtd.storage import CollectionStore
from mtd.sync import SyncServer

SECRET = "Very secure passwd"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def home(mtd_home: Path) -> str:
    return str(mtd_home)


def _stored(home: str) -> TdList:
    return CollectionStore(Path(home) / "items.json").load_collection()


def _run(runner: CliRunner, home: str, *args: str, **kwargs) -> Result:
    return runner.invoke(main, [*args, "--home", home], **kwargs)


class TestAdd:
    """Tests for adding items."""

    def test_add_todo(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "add", "todo", "Buy milk")
        assert result.exit_code == 0, result.output
        assert "Buy milk (ID: 0)" in result.output
        todo = _stored(home).todos[0]
        assert (todo.body, todo.weekday) == ("Buy milk", None)

    def test_add_todo_for_weekday(self, runner: CliRunner, home: str) -> None:
        _run(runner, home, "add", "todo", "Bins", "THU")
        assert _stored(home).todos[0].weekday == Weekday.THU

    def test_add_todo_rejects_two_weekdays(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "add", "todo", "Bins", "mon", "tue")
        assert result.exit_code == 1
        assert "at most one weekday" in result.output

    def test_add_task(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "add", "task", "Gym", "fri", "mon")
        assert result.exit_code == 0, result.output
        assert _stored(home).tasks[0].weekdays == [Weekday.MON, Weekday.FRI]

    def test_add_task_needs_weekday(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "add", "task", "Gym")
        assert result.exit_code == 1
        assert not _stored(home).tasks

    def test_unknown_weekday(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "add", "todo", "x", "someday")
        assert result.exit_code == 2

    def test_ids_are_reused(self, runner: CliRunner, home: str) -> None:
        for body in ("a", "b", "c"):
            _run(runner, home, "add", "todo", body)
        _run(runner, home, "remove", "todo", "1")
        result = _run(runner, home, "add", "todo", "d")
        assert "d (ID: 1)" in result.output


class TestEdit:
    """Tests for remove, set, do and undo."""

    @pytest.fixture(autouse=True)
    def populated(self, home: str) -> None:
        tdlist = TdList()
        tdlist.add_todo("Buy milk", Weekday.MON)
        tdlist.add_task("Gym", [Weekday.TUE])
        CollectionStore(Path(home) / "items.json").save_collection(tdlist)

    def test_remove(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "remove", "task", "0")
        assert result.exit_code == 0, result.output
        assert _stored(home).tasks == []

    def test_remove_missing_id(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "remove", "todo", "7")
        assert result.exit_code == 1
        assert "No todo with the given id: 7" in result.output

    def test_set_body_and_weekday(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "set", "todo", "0", "--body", "Buy oat milk", "-w", "wed")
        assert result.exit_code == 0, result.output
        todo = _stored(home).todos[0]
        assert (todo.body, todo.weekday) == ("Buy oat milk", Weekday.WED)

    def test_set_no_weekday(self, runner: CliRunner, home: str) -> None:
        _run(runner, home, "set", "todo", "0", "--no-weekday")
        assert _stored(home).todos[0].weekday is None

    def test_set_task_weekdays(self, runner: CliRunner, home: str) -> None:
        _run(runner, home, "set", "task", "0", "-w", "sun", "-w", "sat")
        assert _stored(home).tasks[0].weekdays == [Weekday.SAT, Weekday.SUN]

    def test_set_task_no_weekday_refused(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "set", "task", "0", "--no-weekday")
        assert result.exit_code == 1
        assert _stored(home).tasks[0].weekdays == [Weekday.TUE]

    def test_do_and_undo(self, runner: CliRunner, home: str) -> None:
        _run(runner, home, "do", "todo", "0")
        todo = _stored(home).todos[0]
        assert todo.done and todo.done_on is not None

        _run(runner, home, "undo", "todo", "0")
        todo = _stored(home).todos[0]
        assert not todo.done and todo.done_on is None

    def test_do_task(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "do", "task", "0")
        assert result.exit_code == 0, result.output
        assert _stored(home).tasks[0].done

    def test_do_missing_id(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "do", "task", "3")
        assert result.exit_code == 1
        assert "No task with the given id: 3" in result.output


class TestShow:
    """Tests for listing items."""

    def test_empty(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "show")
        assert result.exit_code == 0
        assert "Nothing to do" in result.output

    def test_weekday_filters(self, runner: CliRunner, home: str) -> None:
        _run(runner, home, "add", "todo", "Monday thing", "mon")
        _run(runner, home, "add", "todo", "Any day")
        _run(runner, home, "add", "task", "Tuesday task", "tue")

        result = _run(runner, home, "show", "-w", "mon")
        assert result.exit_code == 0, result.output
        assert "Monday thing" in result.output
        assert "Any day" in result.output
        assert "Tuesday task" not in result.output

    def test_item_type_filter(self, runner: CliRunner, home: str) -> None:
        _run(runner, home, "add", "todo", "A todo", "tue")
        _run(runner, home, "add", "task", "A task", "tue")
        result = _run(runner, home, "show", "-w", "tue", "-i", "task")
        assert "A task" in result.output
        assert "A todo" not in result.output

    def test_week(self, runner: CliRunner, home: str) -> None:
        _run(runner, home, "add", "task", "Weekend", "sat", "sun")
        result = _run(runner, home, "show", "--week")
        assert result.exit_code == 0, result.output
        assert result.output.count("Weekend") == 2

    def test_week_and_weekday_conflict(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "show", "--week", "-w", "mon")
        assert result.exit_code == 1

    def test_markup_in_body_is_literal(self, runner: CliRunner, home: str) -> None:
        _run(runner, home, "add", "todo", "[bold]not bold[/bold]", "fri")
        result = _run(runner, home, "show", "-w", "fri")
        assert "[bold]not bold[/bold]" in result.output


class TestInit:
    """Tests for writing the configuration."""

    def test_writes_config(self, runner: CliRunner, home: str) -> None:
        result = _run(
            runner, home, "init", "--host", "10.1.1.1", "--port", "6000",
            input="pw\npw\n",
        )
        assert result.exit_code == 0, result.output
        data = yaml.safe_load((Path(home) / CONFIG_FILE).read_text())
        assert data["host"] == "10.1.1.1"
        assert data["port"] == 6000
        assert data["secret"] == "pw"

    def test_secret_option(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "init", "--secret", "s3cret")
        assert result.exit_code == 0, result.output
        assert MtdConfig(**yaml.safe_load((Path(home) / CONFIG_FILE).read_text())).secret == "s3cret"


class TestSync:
    """Tests for the sync command against a live server."""

    def test_requires_secret(self, runner: CliRunner, home: str) -> None:
        result = _run(runner, home, "sync")
        assert result.exit_code == 1
        assert "mtd init" in result.output

    def test_sync_with_server(
        self,
        runner: CliRunner,
        home: str,
        server_store: CollectionStore,
        running_server: SyncServer,
    ) -> None:
        save_config(
            MtdConfig(host="127.0.0.1", port=running_server.port, secret=SECRET, timeout_seconds=2),
            Path(home),
        )
        remote = TdList()
        remote.add_task("From server", [Weekday.WED])
        server_store.save_collection(remote)
        _run(runner, home, "add", "todo", "From client")

        result = _run(runner, home, "sync")
        assert result.exit_code == 0, result.output
        assert "1 todos, 1 tasks" in result.output
        assert _stored(home) == server_store.load_collection()

    def test_sync_unreachable(self, runner: CliRunner, home: str) -> None:
        import socket

        with socket.socket() as s:
            s.bind(("127.0.0.1", 0))
            port = s.getsockname()[1]
        save_config(MtdConfig(port=port, secret=SECRET, timeout_seconds=1), Path(home))

        result = _run(runner, home, "sync")
        assert result.exit_code == 1
        assert "Could not reach the server" in result.output

    def test_sync_wrong_secret(
        self, runner: CliRunner, home: str, running_server: SyncServer
    ) -> None:
        save_config(
            MtdConfig(port=running_server.port, secret="wrong", timeout_seconds=2),
            Path(home),
        )
        result = _run(runner, home, "sync")
        assert result.exit_code == 1
        assert "same secret" in result.output

    def test_sync_corrupt_local_list(
        self, runner: CliRunner, home: str, running_server: SyncServer
    ) -> None:
        save_config(
            MtdConfig(port=running_server.port, secret=SECRET, timeout_seconds=2),
            Path(home),
        )
        (Path(home) / "items.json").write_text("{not json")

        result = _run(runner, home, "sync")
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "local list could not be read" in result.output
        assert running_server.sessions_failed == 0

    def test_show_corrupt_local_list(self, runner: CliRunner, home: str) -> None:
        (Path(home) / "items.json").write_text("{not json")
        result = _run(runner, home, "show")
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Could not read" in result.output


class TestMisc:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output
