from click.testing import CliRunner

from cli import cli
from utils.errors import GitError


def _no_git(mocker):
    mocker.patch(
        "core.builder.workspace_builder.get_current_branch_name",
        side_effect=GitError("Git is not installed or not in PATH."),
    )


def _fake_git(mocker):
    mocker.patch("core.builder.workspace_builder.get_current_branch_name", return_value="main")
    mocker.patch("core.builder.workspace_builder.get_recent_log", return_value="")
    mocker.patch("core.builder.workspace_builder.get_working_diff", return_value="")


def test_chat_without_workspace(mocker):
    mocker.patch("cli.setup_logger")
    runner = CliRunner()

    result = runner.invoke(cli, ["chat", "hello", "--provider", "echo"])

    assert result.exit_code == 0, result.output
    assert "Echo: hello" in result.output


def test_context_command(tmp_path, mocker):
    mocker.patch("cli.setup_logger")
    _fake_git(mocker)
    (tmp_path / "app.py").write_text("print(1)\n")
    runner = CliRunner()

    result = runner.invoke(cli, ["context", str(tmp_path), "-f", "app.py", "--prompt"])

    assert result.exit_code == 0, result.output
    assert "app.py (python)" in result.output
    assert "Git Branch: main" in result.output
    assert "# AI Context" in result.output


def test_context_command_reports_git_failure(tmp_path, mocker):
    mocker.patch("cli.setup_logger")
    _no_git(mocker)
    runner = CliRunner()

    result = runner.invoke(cli, ["context", str(tmp_path)])

    assert result.exit_code == 1
    assert "Git is not installed" in result.output


def test_verbose_error_with_braces_is_reported(tmp_path, mocker):
    mocker.patch("cli.setup_logger")
    mocker.patch(
        "core.builder.workspace_builder.get_current_branch_name",
        side_effect=GitError("fatal: bad ref {'HEAD': None}"),
    )
    runner = CliRunner()

    result = runner.invoke(cli, ["-v", "context", str(tmp_path)])

    assert result.exit_code == 1
    assert "bad ref" in result.output
