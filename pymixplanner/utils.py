"""General utility functions."""

import hashlib
import os
from pathlib import Path

from pymixplanner.models import Track

DEFAULT_OUTPUT_DIR = "MixPlannerOutput"

AUDIO_EXTENSIONS = frozenset({".mp3", ".wav", ".aiff", ".aif", ".flac", ".m4a", ".aac", ".alac", ".ogg"})

# Bytes read from each end of a file for the content hash
HASH_CHUNK_SIZE = 1024 * 1024


def get_outputdir(path: str | Path, output_dir: str | Path | None = None) -> Path:
    """Returns the absolute output directory path for exports.

    Args:
        path: The file or directory being processed.
        output_dir: Custom output directory. If None, uses 'MixPlannerOutput' in path's directory.

    Returns:
        Absolute path to the output directory.
    """
    if output_dir is not None:
        return Path(output_dir).resolve()

    p = Path(path)
    base = p if p.is_dir() else p.parent
    return (base / DEFAULT_OUTPUT_DIR).resolve()


def mk_outputdir(path: str | Path, output_dir: str | Path | None = None) -> Path:
    """Creates and returns the output directory."""
    out = get_outputdir(path, output_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out


def is_audio_file(path: str | Path) -> bool:
    return Path(path).suffix.lower() in AUDIO_EXTENSIONS


def find_audio_files(dir_path: str | Path, recursive: bool = False) -> list[str]:
    """Audio files in a directory, sorted by path."""
    if recursive:
        files = [
            os.path.join(directory, filename)
            for directory, _, file_list in os.walk(dir_path)
            for filename in file_list
        ]
    else:
        files = [
            os.path.join(dir_path, f)
            for f in os.listdir(dir_path)
            if os.path.isfile(os.path.join(dir_path, f))
        ]
    return sorted(f for f in files if is_audio_file(f))


def parse_track_metadata(path: str | Path) -> tuple[str, str]:
    """Returns (artist, title) from an 'Artist - Title' filename.

    Files without the separator get an empty artist and the bare stem as title.
    """
    stem = Path(path).stem
    artist, sep, title = stem.partition(" - ")
    if sep and artist.strip() and title.strip():
        return artist.strip(), title.strip()
    return "", stem.strip()


def compute_content_hash(path: str | Path) -> str:
    """SHA-256 of the first and last MiB of a file plus its size.

    Stable under renames and cheap for large files.
    """
    p = Path(path)
    size = p.stat().st_size
    digest = hashlib.sha256()
    with p.open("rb") as f:
        digest.update(f.read(HASH_CHUNK_SIZE))
        if size > HASH_CHUNK_SIZE:
            f.seek(max(size - HASH_CHUNK_SIZE, HASH_CHUNK_SIZE))
            digest.update(f.read(HASH_CHUNK_SIZE))
    digest.update(str(size).encode())
    return digest.hexdigest()


def track_from_file(path: str | Path) -> Track:
    """Build a Track record for a local file, keyed by its content hash."""
    p = Path(path).resolve()
    artist, title = parse_track_metadata(p)
    return Track(track_id=compute_content_hash(p), path=str(p), title=title, artist=artist)
