"""Fetch build reports and attribute their errors to topic branches."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from .config import BaselineConfig, ConfigError, ReportConfig, significant_lines
from .errors import AlreadyHandled
from .git.repo import GitCommandError, GitRepo
from .logging import get_logger
from .markers import MarkerStore
from .models import Attribution, ErrorRecord, MarkerKind, ReportOutcome, TopicEntry

_LOCATION_RE = re.compile(r"^(?:\./)?(?P<path>[^:\s]+):(?P<line>\d+)(?::\d+)?:?$")

_logger = get_logger("report")


def parse_location(token: str) -> Optional[tuple[str, int]]:
    """Split a ``path:line[:col][:]`` token; returns None for anything else."""
    match = _LOCATION_RE.match(token)
    if not match:
        return None
    line = int(match.group("line"))
    if line <= 0:
        return None
    return match.group("path"), line


def parse_report(text: str, *, location_field: int = 0) -> List[ErrorRecord]:
    """Parse one error record per significant report line."""
    records: List[ErrorRecord] = []
    for number, line in significant_lines(text):
        tokens = line.split()
        if location_field >= len(tokens):
            _logger.debug("Report line %d has no field %d: %s", number, location_field, line)
            continue
        location = parse_location(tokens[location_field])
        if location is None:
            _logger.debug("Report line %d has no path:line location: %s", number, line)
            continue
        path, line_number = location
        records.append(ErrorRecord(path=path, line=line_number, message=line))
    return records


class ReportFetcher:
    """Retrieves report artifacts over HTTP; unavailable reports yield ``None``."""

    def __init__(self, *, timeout: Optional[float] = 60.0) -> None:
        self.timeout = timeout

    def fetch(self, url: str) -> Optional[str]:
        request = Request(url, headers={"User-Agent": "kinteg"})
        timeout = self.timeout or 60.0
        try:
            with urlopen(request, timeout=timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            _logger.info("Report not available at %s (HTTP %s)", url, exc.code)
            return None
        except URLError as exc:
            _logger.info("Report not available at %s: %s", url, exc.reason)
            return None
        except OSError as exc:
            _logger.info("Report not available at %s: %s", url, exc)
            return None
        return raw.decode("utf-8", errors="replace")


class ReportAttributor:
    """Blames report errors and records the ``blamed``/``reported`` markers."""

    def __init__(
        self,
        repo: GitRepo,
        topics: Sequence[TopicEntry],
        *,
        baseline: BaselineConfig,
        report: ReportConfig,
        markers: MarkerStore,
        fetcher: ReportFetcher | None = None,
    ) -> None:
        self._repo = repo
        self._topics = list(topics)
        self._baseline = baseline
        self._report = report
        self._markers = markers
        self._fetcher = fetcher or ReportFetcher(timeout=report.timeout)
        self._containing: Dict[str, List[str]] = {}
        self.logger = _logger

    def report_url(self, description: str) -> str:
        template = self._report.url_template
        if not template:
            raise ConfigError("report.url_template is not configured")
        if "{description}" not in template:
            raise ConfigError("report.url_template must contain '{description}'")
        return template.replace("{description}", quote(description, safe=""))

    def attribute(self, description: str) -> ReportOutcome:
        if self._markers.has(MarkerKind.REPORTED, description):
            raise AlreadyHandled(description, "report already processed")

        url = self.report_url(description)
        text = self._fetcher.fetch(url)
        if text is None:
            return ReportOutcome(description=description, available=False)

        outcome = ReportOutcome(
            description=description,
            available=True,
            records=parse_report(text, location_field=self._report.location_field),
        )
        self.logger.info("Report for %s lists %d errors", description, len(outcome.records))
        self._containing = {}
        for record in outcome.records:
            self._attribute_record(description, record, outcome)

        if outcome.blamed and not self._markers.has(MarkerKind.BLAMED, description):
            self._markers.mark(MarkerKind.BLAMED, description)
        self._markers.mark(MarkerKind.REPORTED, description)
        return outcome

    def _attribute_record(
        self, description: str, record: ErrorRecord, outcome: ReportOutcome
    ) -> None:
        try:
            commit = self._repo.blame_line(description, record.path, record.line)
            branches = self._branches_containing(commit)
        except GitCommandError as exc:
            self.logger.warning("Cannot blame %s:%d: %s", record.path, record.line, exc)
            outcome.unattributed += 1
            return

        if self._baseline.ref in branches:
            self.logger.debug("%s:%d comes from %s", record.path, record.line, self._baseline.ref)
            outcome.ignored += 1
            return

        topic = next((entry for entry in self._topics if entry.ref in branches), None)
        if topic is None:
            outcome.unattributed += 1
            return

        try:
            info = self._repo.commit_info(commit)
        except GitCommandError as exc:
            self.logger.warning("Cannot read commit %s: %s", commit, exc)
            outcome.unattributed += 1
            return
        outcome.attributions.append(Attribution(topic=topic, commit=info, record=record))
        self.logger.info(
            "%s:%d blamed on %s (%s %s)",
            record.path,
            record.line,
            topic.ref,
            info.sha[:12],
            info.subject,
        )

    def _branches_containing(self, commit: str) -> List[str]:
        if commit not in self._containing:
            self._containing[commit] = self._repo.remote_branches_containing(commit)
        return self._containing[commit]


__all__ = ["ReportAttributor", "ReportFetcher", "parse_location", "parse_report"]
