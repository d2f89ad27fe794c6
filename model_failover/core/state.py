"""Block-list persistence.

The state file is shared by every host invocation, so writes go to a temp
file in the same directory and are swapped in with ``os.replace``. A reader
sees either the old file or the new one, never a torn write.

Reads never raise: a missing or corrupt file is an empty block-list.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from model_failover.shared.types import DEFAULT_STATE_FILE, BlockEntry, LimitState
from model_failover.shared.utils import expand_home, setup_logging

logger = setup_logging("failover.state")

__all__ = ["DEFAULT_STATE_FILE", "load_state", "reset_state", "save_state"]


def load_state(path: str | os.PathLike = DEFAULT_STATE_FILE) -> LimitState:
    state_path = Path(expand_home(str(path)))
    try:
        data = json.loads(state_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return LimitState()
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to read failover state {state_path}: {e}")
        return LimitState()

    limited = data.get("limited") if isinstance(data, dict) else None
    if not isinstance(limited, dict):
        logger.warning(f"Ignoring failover state {state_path}: no 'limited' map")
        return LimitState()

    state = LimitState()
    for model, raw in limited.items():
        try:
            state.limited[model] = BlockEntry.model_validate(raw)
        except ValidationError:
            logger.warning(
                f"Skipping malformed block entry for '{model}'",
                extra={"extra_data": {"model": model, "path": str(state_path)}},
            )
    return state


def save_state(path: str | os.PathLike, state: LimitState) -> None:
    """Atomically replace the state file. Write failures raise ``OSError``."""
    state_path = Path(expand_home(str(path)))
    state_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=state_path.parent, prefix=f".{state_path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(state.to_wire(), f, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, state_path)
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def reset_state(path: str | os.PathLike = DEFAULT_STATE_FILE) -> bool:
    """Delete the state file. Returns False if it did not exist."""
    try:
        Path(expand_home(str(path))).unlink()
    except FileNotFoundError:
        return False
    logger.info("Failover state cleared", extra={"extra_data": {"path": str(path)}})
    return True
