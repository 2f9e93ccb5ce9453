"""Executable discovery and the optional npm pre-build step.

Functions:
    find_executable: Locate an executable in PATH or node_modules.
    run_npm_build: Run ``npm run build`` in the project root.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Find an executable in PATH or local node_modules.

    Args:
        name: Name of the executable to find (e.g. ``npm``).
        project_root: Optional project root whose ``node_modules/.bin`` is
            searched after PATH.

    Returns:
        Full path to the executable if found, None otherwise.
    """
    found = shutil.which(name)
    if found:
        return found

    if project_root is not None:
        local = project_root / "node_modules" / ".bin" / name
        if local.exists():
            return str(local)

    return None


def run_npm_build(project_root: Path) -> bool:
    """Run ``npm run build`` in ``project_root``.

    A missing npm or a failing script is logged, not raised; the site build
    continues with whatever assets are already in place.

    Returns:
        True if the script ran and exited successfully.
    """
    npm = find_executable("npm", project_root)
    if npm is None:
        logger.warning("npm_build is enabled but npm was not found; skipping")
        return False
    logger.info("Running npm run build")
    result = subprocess.run(
        [npm, "run", "build"],
        cwd=project_root,
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        logger.warning(
            "npm run build exited with status %s: %s",
            result.returncode,
            result.stderr.strip(),
        )
        return False
    return True
