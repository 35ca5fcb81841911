from __future__ import annotations

import io

from rich.console import Console

from spacetimectl.logger import CliLogger, CliLogLevel
from spacetimectl.models import CliResult


def _logger() -> tuple[CliLogger, io.StringIO]:
    buffer = io.StringIO()
    return CliLogger(level=CliLogLevel.ERROR, console=Console(file=buffer, width=200)), buffer


def test_error_summaries_are_logged_for_a_few_errors():
    logger, buffer = _logger()

    logger.log_cli_result(
        CliResult(error="error: first\nerror: second\n", errors_found=("error: first", "error: second"))
    )

    text = buffer.getvalue()
    assert "CLI Error: error: first" in text
    assert "CLI Error Summary[0]: error: first" in text
    assert "CLI Error Summary[1]: error: second" in text


def test_error_summaries_are_skipped_without_or_with_many_errors():
    logger, buffer = _logger()
    many = tuple(f"error: {i}" for i in range(6))

    logger.log_cli_result(CliResult(error="boom\n"))
    logger.log_cli_result(CliResult(error="\n".join(many), errors_found=many))

    assert "CLI Error Summary" not in buffer.getvalue()
    assert logger.has_errors
