from __future__ import annotations

from rel.output.console import MockConsole, Style


def test_mock_console_records_styles() -> None:
    console = MockConsole()
    console.success("published")
    console.error("boom")
    console.print("cargo build", Style.DIM)

    assert console.messages == ["OK published", "error: boom", "cargo build"]
    assert console.has_error()
    assert console.find("boom")[0].style == Style.ERROR
