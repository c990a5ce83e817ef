# Radar Discovery - Platform Helpers
"""Running platform tools and finding the outbound interface address."""

import asyncio
import logging
import socket

logger = logging.getLogger("radar.discovery.system")


async def run_command(*args: str, timeout: float = 10.0) -> str:
    """
    Run a command and return its stdout. Missing tools, non-zero exits
    and timeouts all return an empty string.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        logger.debug(f"Could not run {args[0]}: {e}")
        return ""

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning(f"{' '.join(args)} timed out after {timeout}s")
        return ""

    if proc.returncode != 0:
        logger.debug(f"{' '.join(args)} exited with {proc.returncode}")
        return ""
    return stdout.decode(errors="ignore")


def get_local_ip() -> str | None:
    """Address of the interface used for outbound traffic."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
    except OSError:
        return None
