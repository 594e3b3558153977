import os
from typing import List

from template_align.core.errors import LoadError
from template_align.core.logging_config import get_logger

logger = get_logger(__name__)


def read_template_list(path: str) -> List[str]:
    """
    Reads a template list file: one point cloud path per line.

    Blank lines and lines starting with '#' are skipped. Relative paths are
    resolved against the directory of the list file. Order is preserved.

    Raises:
        LoadError: list file missing or unreadable
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise LoadError(path, str(e)) from e

    base_dir = os.path.dirname(os.path.abspath(path))
    paths = []
    for line in lines:
        entry = line.strip()
        if not entry or entry.startswith("#"):
            continue
        if not os.path.isabs(entry):
            entry = os.path.join(base_dir, entry)
        paths.append(entry)

    logger.info(f"Template list {path}: {len(paths)} entries")
    return paths
