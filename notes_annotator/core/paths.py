import argparse
import base64
import logging
import mimetypes
import os
from pathlib import Path
from typing import Iterator, List, Optional

from notes_annotator.core.types import InlineData

logger = logging.getLogger(__name__)

# Attachment limits
MAX_FILE_SIZE = 20 * 1024 * 1024  # inline image payload limit
ALLOWED_EXTENSIONS = [".png", ".jpg", ".jpeg", ".webp", ".gif"]

# Where students usually keep photos of their homework
DEFAULT_SEARCH_DIRECTORIES = [
    os.path.expanduser("~/Pictures"),
    os.path.expanduser("~/Downloads"),
    os.path.expanduser("~/Desktop"),
    os.getcwd(),
]
DEFAULT_OUTPUT_DIRECTORY = os.path.join(os.getcwd(), "vibh_output")

# Filled in by setup_search_directories()
SEARCH_DIRECTORIES: List[str] = []
OUTPUT_DIRECTORY: str = DEFAULT_OUTPUT_DIRECTORY


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse CLI arguments for attachment directories, output location and red-pen tuning."""
    parser = argparse.ArgumentParser(
        description="VIBH study assistant MCP server: teacher notes with red-pen follow-ups",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "\nExamples:\n"
            "  python main.py ~/Pictures ~/Downloads\n"
            "  python main.py --allow-dir ~/Homework --output-dir ~/vibh\n"
            "  python main.py ~/Pictures --min-overlap 0.3 --log-level DEBUG\n"
        ),
    )
    parser.add_argument(
        "directories",
        nargs="*",
        help="Directories students may attach images from",
    )
    parser.add_argument(
        "--allow-dir",
        action="append",
        dest="allowed_dirs",
        help="Another attachment directory (repeatable)",
    )
    parser.add_argument(
        "--output-dir",
        default=DEFAULT_OUTPUT_DIRECTORY,
        help="Where synthesized speech and generated visual aids are written",
    )
    parser.add_argument(
        "--max-file-size",
        type=int,
        default=MAX_FILE_SIZE,
        help="Largest image that may be attached, in bytes (default: 20MB)",
    )
    parser.add_argument(
        "--min-overlap",
        type=float,
        default=0.0,
        help="Fraction of a line that must lie inside a red-pen circle (default: 0, any touch)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def _real(path: str) -> str:
    return os.path.realpath(os.path.abspath(os.path.expanduser(path)))


def _is_within(base: str, target: str) -> bool:
    base = os.path.join(os.path.realpath(base), "")  # trailing separator
    target = os.path.realpath(target)
    return target.startswith(base) or target == base[:-1]


def setup_search_directories(args) -> None:
    """Apply parsed args to SEARCH_DIRECTORIES, OUTPUT_DIRECTORY and MAX_FILE_SIZE."""
    global MAX_FILE_SIZE, OUTPUT_DIRECTORY

    MAX_FILE_SIZE = int(args.max_file_size)
    OUTPUT_DIRECTORY = _real(args.output_dir)

    requested = list(getattr(args, "directories", None) or []) + list(getattr(args, "allowed_dirs", None) or [])
    usable: List[str] = []
    for directory in requested:
        real_path = _real(directory)
        if not os.path.isdir(real_path):
            logger.warning(f"Skipping attachment directory {directory}: not a directory")
        elif not os.access(real_path, os.R_OK):
            logger.warning(f"Skipping attachment directory {directory}: not readable")
        else:
            usable.append(real_path)

    if not usable:
        if requested:
            logger.warning("None of the given attachment directories are usable; using defaults.")
        usable = [_real(d) for d in DEFAULT_SEARCH_DIRECTORIES if os.path.isdir(d)]

    # other modules hold a reference to this list
    SEARCH_DIRECTORIES[:] = usable


def validate_and_resolve_path(file_path: str) -> Optional[Path]:
    """Return the attachment as an absolute Path, or None if it may not be sent."""
    real_path = _real(file_path)
    if ".." in Path(file_path).parts or not any(_is_within(d, real_path) for d in SEARCH_DIRECTORIES):
        logger.warning(f"Refusing attachment outside the allowed directories: {file_path}")
        return None

    image = Path(real_path)
    try:
        if not image.is_file():
            return None
        if image.suffix.lower() not in ALLOWED_EXTENSIONS:
            logger.warning(f"Not a supported image type: {file_path}")
            return None
        if image.stat().st_size > MAX_FILE_SIZE:
            logger.warning(f"Image exceeds {MAX_FILE_SIZE} bytes: {file_path}")
            return None
    except OSError as e:
        logger.error(f"Cannot inspect attachment {file_path}: {e}")
        return None
    return image


def _iter_images(directory: Path) -> Iterator[Path]:
    for entry in sorted(directory.iterdir()):
        if entry.is_file() and entry.suffix.lower() in ALLOWED_EXTENSIONS:
            yield entry


def find_file(file_name: str) -> Optional[Path]:
    """Locate an image by path, exact name, or case-insensitive name fragment."""
    if os.path.isabs(file_name) or file_name.startswith("~"):
        found = validate_and_resolve_path(file_name)
        if found:
            return found

    needle = file_name.lower()
    for directory in SEARCH_DIRECTORIES:
        root = Path(directory)
        found = validate_and_resolve_path(str(root / file_name))
        if found:
            return found
        try:
            candidates = [image for image in _iter_images(root) if needle in image.name.lower()]
        except OSError as e:
            logger.error(f"Cannot list {directory}: {e}")
            continue
        for image in candidates:
            found = validate_and_resolve_path(str(image))
            if found:
                return found

    logger.warning(f"No attachable image matches '{file_name}'")
    return None


def load_image(path: Path) -> InlineData:
    """Read an image file into the inline payload sent alongside a question."""
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return {"mime_type": mime_type, "data": base64.b64encode(path.read_bytes()).decode("ascii")}


def output_path(file_name: str) -> Path:
    """Path inside the output directory, created on demand."""
    out_dir = Path(OUTPUT_DIRECTORY)
    out_dir.mkdir(parents=True, exist_ok=True)
    return out_dir / Path(file_name).name


def _images_under(root: str, depth: int) -> Iterator[Path]:
    """Images below `root`, descending at most `depth` levels (0 = root only)."""
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        level = os.path.relpath(dirpath, root).count(os.sep) + (dirpath != root)
        if level >= depth:
            dirnames[:] = []
        for name in filenames:
            if os.path.splitext(name)[1].lower() in ALLOWED_EXTENSIONS:
                yield Path(dirpath) / name


def list_image_files_text(directory: str = "all", depth: int = 0, limit: int = 50) -> str:
    """
    Listing behind the `list_image_files` tool.

    `directory` filters the allowed roots by name fragment ("all" keeps every
    root). `depth` is clamped to 0..5 and `limit` to 1..200 images per root,
    newest first.
    """
    depth = max(0, min(int(depth), 5))
    limit = max(1, min(int(limit), 200))

    roots = [
        d for d in SEARCH_DIRECTORIES
        if directory == "all" or directory.lower() in os.path.basename(d).lower() or directory in d
    ]
    if not roots:
        return f"Error: No accessible directory matched '{directory}'."

    lines: List[str] = []
    total = 0
    for root in roots:
        if not os.path.isdir(root):
            continue
        images = sorted(_images_under(root, depth), key=lambda p: p.stat().st_mtime, reverse=True)
        total += len(images)
        lines.append(f"[{os.path.basename(root) or root}] {len(images)} image(s), depth={depth}:")
        for image in images[:limit]:
            lines.append(f"- {image.relative_to(root)} ({image.stat().st_size / 1024:.0f} KB)")
        lines.append("")

    if not total:
        return "No image files found in the accessible directories."
    return "\n".join([f"Directories scanned: {len(roots)} of {len(SEARCH_DIRECTORIES)} configured", ""] + lines)
