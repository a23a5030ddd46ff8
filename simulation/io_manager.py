"""Frame I/O manager: persist a rendered frame as text plus JSON metadata.

File layout under output_dir/:
    frame.txt      Rendered characters, top row first
    metadata.json  Camera pose, buffer size, strategy, timings (JSON)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)

FRAME_FILENAME = "frame.txt"
METADATA_FILENAME = "metadata.json"


def save_frame(
    output_dir: Path | str,
    text: str,
    metadata: dict,
) -> list[Path]:
    """Save a rendered frame and its metadata.

    Parameters
    ----------
    output_dir : Path or str
        Output directory (created if needed).
    text : str
        Frame text as printed (rows joined with newlines).
    metadata : dict
        Frame metadata. NumPy values are converted to JSON natives.

    Returns
    -------
    list[Path]
        Paths to the saved files.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    frame_path = output_dir / FRAME_FILENAME
    with open(frame_path, "w", encoding="utf-8") as f:
        f.write(text)
        f.write("\n")

    meta_path = output_dir / METADATA_FILENAME
    with open(meta_path, "w", encoding="utf-8") as f:
        json.dump(_sanitize_for_json(metadata), f, indent=2, ensure_ascii=False)

    logger.info("Saved frame (%d lines) and metadata to %s", text.count("\n") + 1, output_dir)
    return [frame_path, meta_path]


def load_frame(output_dir: Path | str) -> tuple[str, dict]:
    """Load a frame previously written by :func:`save_frame`.

    Returns
    -------
    tuple[str, dict]
        Frame text (without the trailing newline) and metadata.
    """
    output_dir = Path(output_dir)
    frame_path = output_dir / FRAME_FILENAME
    if not frame_path.exists():
        raise FileNotFoundError(f"Frame file not found: {frame_path}")

    with open(frame_path, "r", encoding="utf-8") as f:
        text = f.read()
    if text.endswith("\n"):
        text = text[:-1]

    meta_path = output_dir / METADATA_FILENAME
    if meta_path.exists():
        with open(meta_path, "r", encoding="utf-8") as f:
            metadata = json.load(f)
    else:
        logger.warning("Missing file: %s", meta_path)
        metadata = {}

    return text, metadata


def _sanitize_for_json(obj: object) -> object:
    """Recursively convert NumPy types and tuples to JSON natives."""
    if isinstance(obj, dict):
        return {k: _sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize_for_json(v) for v in obj]
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    return obj
