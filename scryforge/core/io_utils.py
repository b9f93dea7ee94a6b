"""
YAML persistence for configuration and stored tokens.
"""
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict
import logging

import yaml

logger = logging.getLogger(__name__)

PRIVATE_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR
SHARED_FILE_MODE = PRIVATE_FILE_MODE | stat.S_IRGRP | stat.S_IROTH


def atomic_write_yaml(filepath: Path, data: Dict[str, Any], private: bool = False) -> None:
    """
    Replace a YAML file in one step so readers never see a partial document.

    Args:
        filepath: Target file; missing parent directories are created
        data: Mapping to serialize
        private: Restrict the file to its owner (used for tokens)

    Raises:
        IOError: If serializing or replacing fails; no temp file is left behind
    """
    target = Path(filepath)
    target.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=target.parent,
            prefix=f".{target.stem}_",
            suffix=".tmp",
            delete=False
    ) as handle:
        temp_path = Path(handle.name)
        try:
            yaml.safe_dump(data, handle, default_flow_style=False, allow_unicode=True, sort_keys=False)
        except yaml.YAMLError as e:
            handle.close()
            temp_path.unlink(missing_ok=True)
            raise IOError(f"Cannot serialize {target.name}: {e}") from e

    try:
        os.chmod(temp_path, PRIVATE_FILE_MODE if private else SHARED_FILE_MODE)
        os.replace(temp_path, target)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        logger.error(f"Failed to write {target}: {e}")
        raise IOError(f"Atomic write failed: {e}") from e

    logger.debug(f"Wrote {target}")


def load_yaml(filepath: Path) -> Dict[str, Any]:
    """
    Read a YAML mapping.

    Returns:
        Parsed mapping, {} for an empty document

    Raises:
        FileNotFoundError: File does not exist
        yaml.YAMLError: Malformed YAML
        ValueError: Document is not a mapping
    """
    source = Path(filepath)
    if not source.exists():
        raise FileNotFoundError(f"YAML file not found: {source}")

    with source.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle)
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse {source}: {e}")
            raise

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{source} must contain a mapping, got {type(data).__name__}")

    logger.debug(f"Loaded {source}")
    return data
