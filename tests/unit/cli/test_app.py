from collections.abc import Callable
from pathlib import Path

import pytest
from pytest_mock import MockerFixture


class TestCLIContext:
    def test_default_context_when_unset(self) -> None:
        from huddle.cli import CLIContext

        CLIContext.reset()
        ctx = CLIContext.get_current()

        assert ctx.settings.port == 3001
        assert ctx.settings_error is None

    def test_set_and_reset(self) -> None:
        from huddle.cli import CLIContext
        from huddle.config import HostSettings

        ctx = CLIContext(settings=HostSettings(port=4000), no_color=True)
        CLIContext.set_current(ctx)
        try:
            assert CLIContext.get_current() is ctx
        finally:
            CLIContext.reset()

        assert CLIContext.get_current() is not ctx

    def test_store_follows_settings_path(self, tmp_path: Path) -> None:
        from huddle.cli import CLIContext
        from huddle.config import HostSettings

        ctx = CLIContext(settings=HostSettings(), settings_path=tmp_path / "s.toml")

        assert ctx.store.path == tmp_path / "s.toml"


class TestGlobalOptions:
    def test_prefix_prints_package_dir(
        self, run_cli: Callable[..., int], capsys: pytest.CaptureFixture[str]
    ) -> None:
        from huddle.utils import get_package_dir

        _ = run_cli("--prefix")

        assert capsys.readouterr().out.strip() == str(get_package_dir())

    def test_broken_settings_fall_back_to_defaults(
        self,
        run_cli: Callable[..., int],
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        broken = tmp_path / "broken.toml"
        _ = broken.write_text("port = [")

        code = run_cli("--settings", str(broken), "config", "show")

        captured = capsys.readouterr()
        assert code == 0
        assert "Failed to load settings" in captured.err
        assert "port = 3001" in captured.out

    def test_strict_mode_fails_on_broken_settings(
        self,
        run_cli: Callable[..., int],
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        broken = tmp_path / "broken.toml"
        _ = broken.write_text("port = [")
        monkeypatch.setenv("HUDDLE_STRICT_CONFIG", "1")

        assert run_cli("--settings", str(broken), "config", "show") == 1


class TestServeCommand:
    def test_overrides_reach_the_runner(
        self, run_cli: Callable[..., int], mocker: MockerFixture
    ) -> None:
        from huddle.cli._commands import _serve

        anyio_run = mocker.patch.object(_serve.anyio, "run")

        code = run_cli("serve", "--port", "4500", "--control-port", "4600", "--no-autostart")

        assert code == 0
        anyio_run.assert_called_once()
        runner, settings, _store, _logger, autostart = anyio_run.call_args.args
        assert runner.__name__ == "run_serve"
        assert settings.port == 4500
        assert settings.control_port == 4600
        assert autostart is False

    def test_invalid_port_is_a_validation_error(
        self, run_cli: Callable[..., int], mocker: MockerFixture
    ) -> None:
        from huddle.cli._commands import _serve

        anyio_run = mocker.patch.object(_serve.anyio, "run")

        code = run_cli("serve", "--port", "80")

        assert code == 2
        anyio_run.assert_not_called()

    def test_worker_command_is_hidden(
        self, run_cli: Callable[..., int], capsys: pytest.CaptureFixture[str]
    ) -> None:
        _ = run_cli("--help")

        out = capsys.readouterr().out
        assert "serve" in out
        assert "worker" not in out
