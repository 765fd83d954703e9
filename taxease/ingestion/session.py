"""Wiring of the two stores, the pipeline and the batch coordinator."""

from dataclasses import dataclass

from taxease.classification.base import ReceiptClassifier
from taxease.classification.factory import create_classifier
from taxease.ingestion.batch import BatchCoordinator
from taxease.ingestion.pipeline import ClassificationListener, IngestionPipeline
from taxease.ingestion.records import RecordStore
from taxease.ingestion.stats import ProcessingStats, project_stats
from taxease.rules.persistence import JsonFileSlot, RuleSlot
from taxease.rules.store import RuleStore
from taxease.shared.config import Settings


@dataclass
class AnalyzerSession:
    """Everything one user session of the analyzer works with."""

    settings: Settings
    classifier: ReceiptClassifier
    records: RecordStore
    rules: RuleStore
    pipeline: IngestionPipeline
    coordinator: BatchCoordinator

    def stats(self) -> ProcessingStats:
        return project_stats(self.records.records)


def build_session(
    settings: Settings,
    classifier: ReceiptClassifier | None = None,
    rule_slot: RuleSlot | None = None,
    on_classified: ClassificationListener | None = None,
) -> AnalyzerSession:
    """Create a session with persisted rules and an empty record store.

    Args:
        settings: Application settings
        classifier: Provider to use; created from settings when omitted
        rule_slot: Rule persistence; a JSON file at settings.rules_path when omitted
        on_classified: Optional hook receiving each classification result
    """
    records = RecordStore()
    rules = RuleStore.from_slot(
        rule_slot or JsonFileSlot(settings.rules_path),
        records=records,
        seed_defaults=settings.seed_default_rules,
    )
    classifier = classifier or create_classifier(settings)
    pipeline = IngestionPipeline(
        classifier,
        records,
        rules,
        on_classified=on_classified,
    )
    return AnalyzerSession(
        settings=settings,
        classifier=classifier,
        records=records,
        rules=rules,
        pipeline=pipeline,
        coordinator=BatchCoordinator(rules, records, pipeline),
    )
