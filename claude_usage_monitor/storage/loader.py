"""
Usage log loading.

Reads newline-delimited JSON transcripts into UsageEntry records.
Lines without usage data are skipped; unreadable files inside a directory
scan are logged and skipped so one bad file never aborts a load.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from claude_usage_monitor.core.pricing import PRICING_TABLE, PricingTable
from .models import UsageEntry

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".jsonl"

DEFAULT_DATA_PATHS = (
    "~/.claude/projects",
    "~/.config/claude/projects",
)

PathLike = Union[str, Path]


class EntryParseError(ValueError):
    """Raised when a transcript line holds no usable usage record."""


class EntryLoader:
    """Parses transcript files into usage entries.

    A cost present in the record is trusted as-is; otherwise it is computed
    from the pricing table, with unpriced models costing zero.
    """

    def __init__(self, pricing: PricingTable = PRICING_TABLE, extension: str = DEFAULT_EXTENSION):
        self.pricing = pricing
        self.extension = extension

    def parse_line(self, line: str) -> UsageEntry:
        """Parse one JSON line into a UsageEntry.

        Accepts both the assistant transcript shape (usage nested under
        ``message``) and the flat shape (``model`` and ``usage`` at the top
        level).

        Raises:
            EntryParseError: If the line is not JSON or has no usage data
        """
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise EntryParseError(f"Invalid JSON: {e}")

        if not isinstance(record, dict):
            raise EntryParseError("Record is not a JSON object")

        message = record.get("message")
        if isinstance(message, dict) and isinstance(message.get("usage"), dict):
            usage = message["usage"]
            model = message.get("model")
            if not isinstance(model, str) or not model:
                model = "unknown"
        elif isinstance(record.get("usage"), dict):
            usage = record["usage"]
            model = _require_str(record, "model")
        else:
            raise EntryParseError("No usage data found in record")

        timestamp = _parse_timestamp(_require_str(record, "timestamp"))
        input_tokens = _require_count(usage, "input_tokens")
        output_tokens = _require_count(usage, "output_tokens")
        cache_creation_tokens = _optional_count(usage, "cache_creation_input_tokens")
        cache_read_tokens = _optional_count(usage, "cache_read_input_tokens")

        cost = _optional_cost(record)
        if cost is None:
            cost = self.pricing.calculate_cost(
                model, input_tokens, output_tokens, cache_creation_tokens, cache_read_tokens
            ) or 0.0

        return UsageEntry(
            timestamp=timestamp,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_creation_tokens=cache_creation_tokens,
            cache_read_tokens=cache_read_tokens,
            cost_usd=cost,
        )

    def load_file(self, path: PathLike) -> List[UsageEntry]:
        """Load all usage entries from one transcript file.

        Returns:
            Entries in file order

        Raises:
            OSError: If the file cannot be opened or read
        """
        entries = []
        # Undecodable bytes become U+FFFD so only the damaged line fails to parse
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    entries.append(self.parse_line(line))
                except EntryParseError as e:
                    logger.debug("Skipping %s:%d: %s", path, line_number, e)
        return entries

    def load_directory(self, path: PathLike) -> List[UsageEntry]:
        """Recursively load every matching transcript under a directory.

        Returns:
            Entries from all files, sorted by timestamp

        Raises:
            FileNotFoundError: If the directory does not exist
            NotADirectoryError: If the path is not a directory
        """
        root = Path(path)
        if not root.exists():
            raise FileNotFoundError(f"Data directory not found: {root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")

        entries: List[UsageEntry] = []
        files_read = self._collect(root, entries)
        entries.sort(key=lambda e: e.timestamp)
        logger.info("Loaded %d entries from %d files under %s", len(entries), files_read, root)
        return entries

    def _collect(self, directory: Path, entries: List[UsageEntry]) -> int:
        files_read = 0
        try:
            children = sorted(directory.iterdir())
        except OSError as e:
            logger.warning("Failed to read directory %s: %s", directory, e)
            return files_read

        for child in children:
            if child.is_dir():
                files_read += self._collect(child, entries)
            elif child.is_file() and child.suffix == self.extension:
                try:
                    entries.extend(self.load_file(child))
                    files_read += 1
                except OSError as e:
                    logger.warning("Failed to load file %s: %s", child, e)
        return files_read

    def load_path(self, path: PathLike) -> List[UsageEntry]:
        """Load a single file or a whole directory tree.

        Raises:
            FileNotFoundError: If the path does not exist
        """
        target = Path(path).expanduser()
        if target.is_file():
            entries = self.load_file(target)
            entries.sort(key=lambda e: e.timestamp)
            return entries
        if target.is_dir():
            return self.load_directory(target)
        raise FileNotFoundError(f"Path does not exist: {target}")


def discover_data_paths() -> List[Path]:
    """Return the standard transcript directories that exist on this machine."""
    discovered = []
    for candidate in DEFAULT_DATA_PATHS:
        path = Path(candidate).expanduser()
        if path.is_dir():
            discovered.append(path)
    return discovered


def _parse_timestamp(value: str) -> datetime:
    try:
        timestamp = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise EntryParseError(f"Invalid timestamp: {value!r}")
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise EntryParseError(f"Missing or invalid '{key}' field")
    return value


def _require_count(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    # bool is an int subclass; a true/false token count is malformed
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise EntryParseError(f"Missing or invalid '{key}' field")
    return value


def _optional_count(data: Dict[str, Any], key: str) -> int:
    if data.get(key) is None:
        return 0
    return _require_count(data, key)


def _optional_cost(record: Dict[str, Any]) -> Optional[float]:
    for key in ("costUSD", "cost_usd"):
        value = record.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
            return float(value)
    return None
