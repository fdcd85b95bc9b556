from typer.testing import CliRunner

from replkernel.cli import app

runner = CliRunner()


def test_info_prints_kernel_info() -> None:
    result = runner.invoke(app, ["info"])
    assert result.exit_code == 0
    assert '"language": "Python"' in result.output


def test_check_prints_status() -> None:
    result = runner.invoke(app, ["check", "x = ("])
    assert result.exit_code == 0
    assert result.output.strip() == "incomplete"


def test_execute_prints_messages() -> None:
    result = runner.invoke(app, ["execute", "print('hi')", "6 * 7"])
    assert result.exit_code == 0
    assert '[iopub] stream {"name": "stdout", "text": "hi\\n"}' in result.output
    assert '[iopub] execute_result {"execution_count": 2, "data": {"text/plain": "42"}, "metadata": {}}' in result.output
    assert result.output.count("[shell] execute_reply") == 2
