"""Count output files as the observable sign of extraction progress."""

import logging
import os
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def count_matching_files(directory: Union[str, Path], extension: str) -> int:
    """
    Number of regular files in ``directory`` whose suffix is ``extension``.

    The comparison ignores case. A directory that does not exist or cannot
    be listed counts as zero files.
    """
    wanted = extension.lower()
    try:
        with os.scandir(directory) as entries:
            return sum(
                1 for entry in entries if entry.is_file() and os.path.splitext(entry.name)[1].lower() == wanted
            )
    except FileNotFoundError:  # policy_guard: allow-silent-handler
        logger.debug("Output directory %s does not exist yet", directory)
        return 0
    except OSError as exc:  # policy_guard: allow-silent-handler
        logger.warning("Cannot list output directory %s: %s", directory, exc)
        return 0
