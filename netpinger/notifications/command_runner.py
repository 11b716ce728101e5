"""Run the operator's shell commands on verdict changes."""

import asyncio
import logging

logger = logging.getLogger(__name__)


async def run_command(command: str, timeout: float = 60.0) -> bool:
    """Run a command through ``/bin/sh -c``.

    The command inherits stdout and stderr so its output lands next to the
    pinger's own logs.

    Args:
        command: Shell command line.
        timeout: Seconds to wait before the command is killed.

    Returns:
        True if the command exited with status 0, False otherwise.
    """
    logger.debug("Running command: %s", command)

    try:
        proc = await asyncio.create_subprocess_shell(command)
    except OSError as e:
        logger.error("Failed to start command %r: %s", command, e)
        return False

    try:
        returncode = await asyncio.wait_for(proc.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("Command %r timed out after %.1fs, killing it", command, timeout)
        try:
            proc.kill()
        except ProcessLookupError:
            pass  # Exited between the timeout and the kill
        await proc.wait()
        return False

    if returncode != 0:
        logger.error("Command %r exited with status %d", command, returncode)
        return False

    logger.debug("Command %r finished", command)
    return True
