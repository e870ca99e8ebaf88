"""Pipeline orchestration for the integrate, report and test flows."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from .config import (
    SETTINGS_FILENAME,
    TOPICS_FILENAME,
    ConfigNotFoundError,
    Settings,
    default_candidates,
    load_settings,
    load_topics,
    locate_config,
)
from .errors import KintegError
from .git.publisher import ResultPublisher
from .git.repo import GitCommandError, GitRepo
from .integrate import ConflictResolver, IntegrationBuilder
from .logging import get_logger
from .markers import MarkerStore, TestGate
from .models import (
    IntegrationResult,
    MarkerKind,
    ReconciliationResult,
    ReportOutcome,
    TopicEntry,
)
from .prompt import ConsolePrompt, Prompt
from .reconcile import RemoteSetReconciler
from .report import ReportAttributor, ReportFetcher


@dataclass
class IntegrateOutcome:
    """Result of one integrate pipeline run."""

    reconciliation: ReconciliationResult
    integration: Optional[IntegrationResult]
    published: bool
    description: Optional[str] = None


class Orchestrator:
    """Coordinates the kinteg pipelines for one working tree."""

    def __init__(
        self,
        repo_path: Path | str = ".",
        *,
        prompt: Prompt | None = None,
        runner: Callable[..., str] | None = None,
        topics_path: Path | None = None,
        settings_path: Path | None = None,
        resolver: ConflictResolver | None = None,
        fetcher: ReportFetcher | None = None,
        launcher: Callable[[Sequence[str]], int] | None = None,
    ) -> None:
        self.repo_path = Path(repo_path).expanduser().resolve()
        self.repo = GitRepo(self.repo_path, runner=runner)
        self.prompt = prompt or ConsolePrompt()
        self.markers = MarkerStore(self.repo)
        self._topics_path = topics_path
        self._settings_path = settings_path
        self._resolver = resolver
        self._fetcher = fetcher
        self._launcher = launcher
        self._settings: Optional[Settings] = None
        self.logger = get_logger("orchestrator")

    # ------------------------------------------------------------------
    # Configuration

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_settings(self._locate_settings())
        return self._settings

    def load_topics(self) -> List[TopicEntry]:
        candidates = (
            [self._topics_path]
            if self._topics_path is not None
            else default_candidates(self.repo_path, TOPICS_FILENAME)
        )
        path = locate_config(candidates)
        topics = load_topics(path)
        self.logger.debug("Loaded %d topics from %s", len(topics), path)
        return topics

    def _locate_settings(self) -> Optional[Path]:
        if self._settings_path is not None:
            return locate_config([self._settings_path])
        try:
            return locate_config(default_candidates(self.repo_path, SETTINGS_FILENAME))
        except ConfigNotFoundError:
            self.logger.debug("No %s found; using defaults", SETTINGS_FILENAME)
            return None

    # ------------------------------------------------------------------
    # Pipelines

    def run_reconcile(self, topics: Sequence[TopicEntry] | None = None) -> ReconciliationResult:
        topic_list = list(topics) if topics is not None else self.load_topics()
        reconciler = RemoteSetReconciler(
            self.repo,
            topic_list,
            baseline_remote=self.settings.baseline.remote,
            prompt=self.prompt,
        )
        return reconciler.reconcile()

    def run_integrate(self, *, push: bool = True) -> IntegrateOutcome:
        """Reconcile remotes, rebuild the integration branch and publish it."""
        topics = self.load_topics()
        self.logger.info("Starting integrate run for %s", self.repo_path)
        reconciliation = self.run_reconcile(topics)

        if reconciliation.failures:
            failed = ", ".join(reconciliation.failures)
            if not self.prompt.confirm(
                f"Fetching failed for {failed}. Continue with the integration build?",
                default=False,
            ):
                raise KintegError(f"Integration aborted after fetch failures: {failed}")

        builder = IntegrationBuilder(
            self.repo,
            branch=self.settings.integration.branch,
            prompt=self.prompt,
            resolver=self._resolver,
        )
        integration = builder.build(topics, reconciliation)
        if integration is None:
            return IntegrateOutcome(reconciliation=reconciliation, integration=None, published=False)

        published = False
        if push:
            publisher = ResultPublisher(
                self.repo,
                remote=self.settings.publish.remote,
                remote_branch=self.settings.publish.branch,
                prompt=self.prompt,
            )
            published = publisher.publish(integration.branch)
        else:
            self.logger.info("Skipping push of %s", integration.branch)

        try:
            description = self.repo.describe(integration.branch)
        except GitCommandError as exc:
            self.logger.warning("Cannot describe %s: %s", integration.branch, exc)
            description = None

        return IntegrateOutcome(
            reconciliation=reconciliation,
            integration=integration,
            published=published,
            description=description,
        )

    def run_report(self, description: str | None = None) -> ReportOutcome:
        """Attribute the errors in the report for ``description``."""
        target = description or self.describe()
        self.logger.info("Starting report run for %s", target)
        attributor = ReportAttributor(
            self.repo,
            self.load_topics(),
            baseline=self.settings.baseline,
            report=self.settings.report,
            markers=self.markers,
            fetcher=self._fetcher,
        )
        return attributor.attribute(target)

    def run_test(self, description: str | None = None) -> int:
        """Launch the test framework when the run markers allow it."""
        target = description or self.describe()
        gate = TestGate(self.markers, self.settings.test, launcher=self._launcher)
        return gate.run(target)

    def describe(self) -> str:
        return self.repo.describe(self.settings.integration.branch)

    def status(self, description: str | None = None) -> Dict[MarkerKind, bool]:
        target = description or self.describe()
        return self.markers.markers(target)


__all__ = ["IntegrateOutcome", "Orchestrator"]
