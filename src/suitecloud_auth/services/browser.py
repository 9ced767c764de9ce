"""
System browser launcher for the interactive authorization step.
"""

import asyncio
import subprocess
import sys

from loguru import logger

from suitecloud_auth.exceptions import BrowserLaunchError


def browser_command(url: str, platform: str = sys.platform) -> list[str]:
    """Command line that opens ``url`` with the platform's default handler."""
    if platform == "darwin":
        return ["open", url]
    if platform == "win32":
        return ["cmd", "/c", "start", '""', url]
    return ["xdg-open", url]


async def open_in_default_browser(url: str) -> None:
    """
    Open a URL in the default browser without waiting for it to exit.

    Raises:
        BrowserLaunchError: If the launcher process cannot be spawned
    """
    command = browser_command(url)
    try:
        await asyncio.create_subprocess_exec(
            *command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise BrowserLaunchError(
            f"Unable to open browser with {command[0]}: {e}"
        ) from e
    logger.debug(f"Launched browser via {command[0]}")
