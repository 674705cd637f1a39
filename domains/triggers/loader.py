"""Decoding of trigger definition files."""

from pathlib import Path

from pydantic import ValidationError

from app.models.schemas import TriggerDefinition


class TriggerLoadError(Exception):
    """Raised when a trigger definition cannot be turned into a trigger."""


class WatchAttachError(TriggerLoadError):
    """Raised when a trigger's path cannot be watched."""


def load_trigger_definition(path: Path) -> TriggerDefinition:
    """
    Read and decode one JSON trigger definition.

    Args:
        path: Definition file

    Returns:
        Decoded definition

    Raises:
        TriggerLoadError: If the file is unreadable or not a valid definition
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise TriggerLoadError(f"cannot read {path}: {e}") from e

    try:
        return TriggerDefinition.model_validate_json(raw)
    except ValidationError as e:
        raise TriggerLoadError(f"invalid trigger definition {path}: {e}") from e
