import py_compile
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent


def test_discord_modules_compile() -> None:
    """Modules that need ``discord`` at import time must at least compile.

    The entry point and the gateway handlers are only imported when the bot
    runs, so a syntax error there would otherwise slip past the suite.
    """
    for module in (
        "bot.py",
        "main.py",
        "ui/views.py",
        "ui/modals.py",
        "commands/register.py",
    ):
        py_compile.compile(str(ROOT / "potluck_bot" / module), doraise=True)
