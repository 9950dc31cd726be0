"""Metadata extraction through the yt-dlp command line.

The cache only depends on the ``Extractor`` protocol, so tests (or a
different backend) can stand in for the subprocess.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional, Protocol

from services.common.logging_utils import log_timing
from services.media_proxy.config import DEFAULT_EXTRACTOR_BINARY, SERVICE_NAME
from services.media_proxy.errors import ExtractionFailed, ExtractorTimeout
from services.media_proxy.records import MetadataRecord

log = logging.getLogger(f"{SERVICE_NAME}.extractor")

# Enough of stderr to see yt-dlp's final ERROR line without flooding logs.
_STDERR_TAIL_CHARS = 2000


class Extractor(Protocol):
    async def extract(self, reference: str) -> list[MetadataRecord]:
        """Return one record per media item behind *reference*."""
        ...


def parse_info_lines(output: str, source: str = DEFAULT_EXTRACTOR_BINARY) -> list[MetadataRecord]:
    """Parse line-delimited ``-j`` output into records.

    Lines that are not JSON objects with a string ``original_url`` are
    skipped with a warning. Raises ExtractionFailed when nothing usable is
    left.
    """
    records = []
    for line_number, raw_json in enumerate(output.split("\n"), start=1):
        if not raw_json.strip():
            continue
        try:
            info = json.loads(raw_json)
        except json.JSONDecodeError as e:
            log.warning(f"couldn't parse JSON on line {line_number}: {e}")
            continue
        if not isinstance(info, dict):
            log.warning(f"line {line_number} is {type(info).__name__}, not a JSON object")
            continue
        if not isinstance(info.get("original_url"), str):
            log.warning(f"line {line_number} has no string \"original_url\"; skipping")
            continue
        records.append(MetadataRecord(info))

    if not records:
        raise ExtractionFailed(f"received no info from {source}")
    return records


class YtDlpExtractor:
    """Runs ``<binary> -f bestaudio -j <reference>`` once per call."""

    def __init__(
        self,
        binary: str = DEFAULT_EXTRACTOR_BINARY,
        timeout: Optional[float] = None,
        audio_format: str = "bestaudio",
    ):
        self.binary = binary
        self.timeout = timeout
        self.audio_format = audio_format

    def command(self, reference: str) -> list[str]:
        return [self.binary, "-f", self.audio_format, "-j", reference]

    @log_timing(log, "yt-dlp extraction")
    async def extract(self, reference: str) -> list[MetadataRecord]:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command(reference),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExtractionFailed(f"could not start {self.binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            if process.returncode is None:
                process.kill()
            await process.wait()
            raise ExtractorTimeout(
                f"{self.binary} did not finish within {self.timeout}s for {reference!r}"
            ) from None

        if process.returncode != 0:
            tail = stderr.decode("utf-8", errors="replace")[-_STDERR_TAIL_CHARS:].strip()
            if tail:
                log.error(f"{self.binary} stderr for {reference!r}: {tail}")
            raise ExtractionFailed(
                f"child process failed to gather info (exit status {process.returncode})"
            )

        try:
            output = stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ExtractionFailed(f"{self.binary} wrote non UTF-8 output: {e}") from e
        return parse_info_lines(output, source=self.binary)
