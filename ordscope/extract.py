"""Write inscription content to disk.

Each file is written under a temporary name in the target directory and then
renamed into place, so an interrupted run never leaves a truncated file under
``<inscription-id>.<extension>``. An existing file with the same name is
replaced: an inscription's content never changes, so re-extracting it yields
the same bytes.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List

from .inscription import Inscription

logger = logging.getLogger(__name__)


class ExtractionIOError(RuntimeError):
    """Raised when an inscription cannot be written to disk."""

    def __init__(self, inscription_id: str, path: Path, cause: OSError) -> None:
        super().__init__(f"Cannot write {inscription_id} to {path}: {cause}")
        self.inscription_id = inscription_id
        self.path = path
        self.cause = cause


@dataclass
class ExtractionReport:
    written: List[Path] = field(default_factory=list)
    failures: List[ExtractionIOError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def extract_inscription(inscription: Inscription, directory: str | Path) -> Path:
    """Write ``inscription`` into ``directory`` and return the final path."""

    target_dir = Path(directory)
    path = target_dir / inscription.file_name()
    tmp_name = None
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=target_dir, prefix=f".{inscription.inscription_id}.", suffix=".part", delete=False
        ) as handle:
            tmp_name = handle.name
            handle.write(inscription.content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise ExtractionIOError(inscription.inscription_id, path, exc) from exc
    logger.info("Extracted %s (%d bytes) to %s", inscription.inscription_id, inscription.size, path)
    return path


def extract_all(inscriptions: Iterable[Inscription], directory: str | Path) -> ExtractionReport:
    """Extract every inscription, collecting failures instead of stopping."""

    report = ExtractionReport()
    for inscription in inscriptions:
        try:
            report.written.append(extract_inscription(inscription, directory))
        except ExtractionIOError as exc:
            logger.debug("%s", exc)
            report.failures.append(exc)
    return report
