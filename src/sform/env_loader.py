# src/sform/env_loader.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

ENV_FILENAMES = (".env", ".dotenv")


def load_env_files(
    candidates: Optional[Iterable[Path]] = None,
    *,
    override: bool = False,
) -> Optional[Path]:
    """Load Salesforce credentials from a dotenv file.

    - Looks for .env / .dotenv in the current working directory unless
      explicit candidates are given.
    - First existing file wins; variables already present in the
      environment are kept unless ``override`` is set.
    - Returns the file that was loaded, or None.
    """
    if candidates is None:
        cwd = Path.cwd()
        candidates = [cwd / name for name in ENV_FILENAMES]

    for path in candidates:
        if path.is_file():
            load_dotenv(path, override=override)
            _logger.debug("Loaded environment variables from %s", path)
            return path

    _logger.debug("No dotenv file found among candidates")
    return None
