"""CLI tests for rotation management commands."""

from typer.testing import CliRunner

from slowburn.cli import app

runner = CliRunner()


def test_add_and_list_plans(test_engine):
    result = runner.invoke(
        app,
        ["add-plan", "--channel", "workout", "--day-number", "1", "--focus", "upper", "--exercises-json", '["push-ups", "rows"]'],
    )
    assert result.exit_code == 0, result.output
    assert "Added workout plan" in result.output

    result = runner.invoke(app, ["list-plans", "--channel", "workout"])
    assert result.exit_code == 0, result.output
    assert "upper" in result.output


def test_list_empty_rotation(test_engine):
    result = runner.invoke(app, ["list-plans", "--channel", "mobility"])
    assert result.exit_code == 0
    assert "default plan" in result.output


def test_add_plan_rejects_bad_json(test_engine):
    result = runner.invoke(
        app,
        ["add-plan", "--day-number", "1", "--focus", "upper", "--exercises-json", "not json"],
    )
    assert result.exit_code == 1


def test_add_plan_rejects_unknown_channel(test_engine):
    result = runner.invoke(
        app,
        ["add-plan", "--channel", "cardio", "--day-number", "1", "--focus", "x", "--exercises-json", '["a"]'],
    )
    assert result.exit_code == 1


def test_heatmap_command(test_engine):
    result = runner.invoke(app, ["heatmap", "--days", "30", "--end", "2024-05-10"])
    assert result.exit_code == 0, result.output
    assert "0 active days out of 30" in result.output
