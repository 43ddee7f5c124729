"""Copy text to the system clipboard through the platform's clipboard tool."""

import shutil
import subprocess
from typing import List, Optional
import structlog


logger = structlog.get_logger()


# Tried in order; the first one on PATH wins
COPY_COMMANDS = (
    ["pbcopy"],
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
    ["clip"],
)


def find_copy_command() -> Optional[List[str]]:
    for command in COPY_COMMANDS:
        if shutil.which(command[0]):
            return list(command)
    return None


def copy_text(text: str, timeout: float = 5.0) -> bool:
    """
    Put text on the clipboard.

    Returns:
        False when no clipboard tool is installed or the tool failed
    """
    command = find_copy_command()
    if command is None:
        logger.warning("No clipboard tool found")
        return False

    try:
        subprocess.run(command, input=text, text=True, check=True, timeout=timeout)
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("Clipboard copy failed", command=command[0], error=str(e))
        return False

    logger.debug("Copied to clipboard", command=command[0], length=len(text))
    return True
