from click.testing import CliRunner

from sform.cli import cli


def test_integration_cli_help_runs():
    """
    The real entry point imports and lists every subcommand.
    """
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("login", "query", "search", "get"):
        assert command in result.output


def test_search_help_mentions_escaping():
    result = CliRunner().invoke(cli, ["search", "--help"])

    assert result.exit_code == 0
    assert "not escaped" in result.output
