"""
Loading spacchetti.dhall manifests from text or disk.
"""

from pathlib import Path
from typing import Optional, Union

from .config import DEFAULT_MANIFEST, load_config, logger
from .decoder import decode
from .domain import Config
from .evaluator import DhallSource


def decode_source(source: DhallSource) -> Config:
    """Evaluate ``source`` and decode it, letting the evaluator confirm types."""
    return decode(source.evaluate(), checker=source)


def parse_config(text: str) -> Config:
    """Evaluate Dhall source text and decode it into a Config."""
    return decode_source(DhallSource(text))


def open_manifest(path: Union[str, Path]) -> DhallSource:
    """
    Source for the manifest at ``path``.

    Raises:
        FileNotFoundError: If there is no file at ``path``
        EvaluationError: If the path cannot be imported by Dhall
    """
    return DhallSource.from_file(path)


def read_config(path: Union[str, Path]) -> Config:
    """
    Read and decode the manifest at ``path``.

    Raises:
        FileNotFoundError: If there is no file at ``path``
        EvaluationError: If the Dhall evaluator rejects the file
        ConfigReadError: If the result is not a valid config
    """
    logger.debug(f"Reading manifest {path}")
    return decode_source(open_manifest(path))


def find_manifest(path: Optional[Union[str, Path]] = None, settings: Optional[dict] = None) -> Path:
    """
    Resolve which manifest to read.

    An explicit ``path`` wins; otherwise the ``manifest`` setting is used,
    relative to the working directory.
    """
    if path:
        return Path(path)
    if settings is None:
        settings = load_config()
    return Path(settings.get("manifest") or DEFAULT_MANIFEST)
