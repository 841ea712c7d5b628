"""
Per-day summary cache.

Reads and writes one versioned JSON document per calendar day. Anything
unexpected on the read side is a cache miss, never an error: the caller can
always fall back to recomputing the day from the raw logs.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from .filesystem import LocalFileSystem
from .models import (
    DAILY_SUMMARY_SCHEMA_VERSION,
    DailySummary,
    ModelTotals,
    SummaryTotals,
)
from ai_usage_range.core.parsers import to_safe_int

logger = logging.getLogger(__name__)


class DailySummaryCache:
    """Versioned daily summary store rooted at a cache directory.

    Writes to the same day file are serialized through per-path locks owned
    by this instance, and every write replaces the whole file.
    """

    def __init__(self, cache_dir: Path, fs: Optional[LocalFileSystem] = None):
        """Initialize the cache.

        Args:
            cache_dir: Directory holding one ``<YYYY-MM-DD>.json`` per day
            fs: File system primitives (defaults to local disk)
        """
        self.cache_dir = Path(cache_dir)
        self._fs = fs or LocalFileSystem()
        self._locks: Dict[Path, asyncio.Lock] = {}

    def path_for(self, day_key: str) -> Path:
        return self.cache_dir / f"{day_key}.json"

    async def read(self, day_key: str) -> Optional[DailySummary]:
        """Return the stored summary for a day, or None on any miss.

        Absent, unreadable, unparsable, structurally wrong, misdated and
        out-of-version documents are all reported as None.

        Args:
            day_key: Calendar day in YYYY-MM-DD form

        Returns:
            The cached DailySummary or None
        """
        path = self.path_for(day_key)
        try:
            if not await asyncio.to_thread(self._fs.exists, path):
                return None
            raw_text = await asyncio.to_thread(self._fs.read_text, path)
            raw = json.loads(raw_text)
            summary = parse_daily_summary(raw, day_key)
        except (OSError, ValueError, RecursionError) as e:
            logger.debug("Daily summary %s unreadable, treating as miss: %s", day_key, e)
            return None

        if summary is None:
            logger.debug("Daily summary %s rejected, treating as miss", day_key)
        return summary

    async def write(self, day_key: str, summary: DailySummary) -> None:
        """Persist a summary, replacing any previous document for the day.

        Args:
            day_key: Calendar day in YYYY-MM-DD form
            summary: Summary to serialize

        Raises:
            OSError: If the directory or file cannot be written
        """
        path = self.path_for(day_key)
        lock = self._locks.setdefault(path, asyncio.Lock())
        payload = json.dumps(summary.to_dict(), ensure_ascii=False, indent=2) + "\n"
        async with lock:
            await asyncio.to_thread(self._fs.mkdir, self.cache_dir)
            await asyncio.to_thread(self._fs.write_text, path, payload)


def parse_daily_summary(raw, day_key: str) -> Optional[DailySummary]:
    """Validate a decoded cache document against the current schema.

    Args:
        raw: Decoded JSON value
        day_key: Day the document is expected to describe

    Returns:
        DailySummary, or None if the document must be recomputed
    """
    if not isinstance(raw, dict):
        return None

    # Documents from an older schema were aggregated under different rules.
    if to_safe_int(raw.get("schemaVersion")) != DAILY_SUMMARY_SCHEMA_VERSION:
        return None

    date = raw.get("date", day_key)
    if date != day_key:
        return None

    raw_models = raw.get("models", {})
    if not isinstance(raw_models, dict):
        return None

    models = {}
    for model_name, model_data in raw_models.items():
        if not isinstance(model_name, str) or not isinstance(model_data, dict):
            continue
        input_tokens = to_safe_int(model_data.get("input"))
        output_tokens = to_safe_int(model_data.get("output"))
        cache_read = to_safe_int(model_data.get("cacheRead"))
        cache_create = to_safe_int(model_data.get("cacheCreate"))
        total = to_safe_int(model_data.get("total")) or (
            input_tokens + output_tokens + cache_read + cache_create
        )
        models[model_name] = ModelTotals(
            input=input_tokens,
            output=output_tokens,
            cache_read=cache_read,
            cache_create=cache_create,
            total=total,
            count=to_safe_int(model_data.get("count")),
        )

    computed = SummaryTotals.from_models(models)
    raw_summary = raw.get("summary")
    if not isinstance(raw_summary, dict):
        raw_summary = {}

    generated_at = raw.get("generatedAt")
    if not isinstance(generated_at, str):
        generated_at = datetime.now(timezone.utc).isoformat()

    return DailySummary(
        date=date,
        generated_at=generated_at,
        models=models,
        summary=SummaryTotals(
            total=to_safe_int(raw_summary.get("total")) or computed.total,
            input=to_safe_int(raw_summary.get("input")) or computed.input,
            output=to_safe_int(raw_summary.get("output")) or computed.output,
            cache=to_safe_int(raw_summary.get("cache")) or computed.cache,
        ),
    )
