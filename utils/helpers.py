from typing import Optional

import click
from loguru import logger


def truncate_string(s: str, max_len: int = 80, suffix: str = "...") -> str:
    if len(s) <= max_len:
        return s
    return s[: max_len - len(suffix)] + suffix


def crop_text(text: str, scroll_x: int = 0, scroll_y: int = 0) -> str:
    """Apply scroll offsets to a block of text: drop leading lines and columns."""
    lines = text.splitlines()[scroll_y:]
    return "\n".join(line[scroll_x:] for line in lines)


def open_in_editor(path: str, editor: Optional[str] = None) -> bool:
    """
    Open `path` in the external editor and block until it exits.
    Returns False when the editor could not be started or exited non-zero.
    """
    try:
        click.edit(filename=path, editor=editor)
    except click.ClickException as e:
        logger.warning(f"Editor failed on {path}: {e.format_message()}")
        return False
    return True
