"""Repository identifier detection via git."""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# scp-like ssh remotes: git@github.com:owner/name.git
SCP_REMOTE_PATTERN = re.compile(r"^[\w.-]+@[\w.-]+:(?P<path>.+)$")


def normalize_repo_url(url: str) -> str:
    """Reduce a git remote URL to ``owner/name``."""
    url = url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]

    match = SCP_REMOTE_PATTERN.match(url)
    if match:
        path = match.group("path")
    elif "://" in url:
        path = urlparse(url).path
    else:
        path = url

    parts = [part for part in path.split("/") if part]
    return "/".join(parts[-2:])


def _working_dir(runner: str | None) -> Path:
    """Directory to inspect: the runner's own directory when it is a local path."""
    if runner and "://" not in runner:
        path = Path(runner).expanduser()
        if path.is_file():
            return path.resolve().parent
        if path.is_dir():
            return path.resolve()
    return Path.cwd()


async def detect_repo(runner: str | None = None) -> str:
    """Detect the repository the tests belong to.

    Falls back to the directory name when git is missing or the directory
    has no ``origin`` remote.
    """
    cwd = _working_dir(runner)

    try:
        proc = await asyncio.create_subprocess_exec(
            "git", "config", "--get", "remote.origin.url",
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await proc.communicate()
    except OSError as e:
        logger.debug("git unavailable in %s: %s", cwd, e)
        return cwd.name

    url = stdout.decode(errors="replace").strip()
    if proc.returncode != 0 or not url:
        return cwd.name
    return normalize_repo_url(url) or cwd.name
