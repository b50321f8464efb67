"""QuestionCatalog — loads the question catalog from YAML into typed models.

This is the single source of truth for question data at runtime.  The
catalog is loaded once at startup, validated as a whole, and then never
mutated.

Usage::

    catalog = QuestionCatalog.load()            # bundled data/questionnaire.yaml
    catalog = QuestionCatalog.load("my.yaml")   # custom file

    q = catalog.get("workout_location")
    first_schedule = catalog.essential_ids()

YAML layout::

    version: "2.3"
    aggregate_metadata: [equipment]
    questions:
      - id: workout_location
        category: essential
        ...
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Iterator

import yaml
from pydantic import ValidationError as PydanticValidationError

from questionnaire_flow.constants import DEFAULT_CATALOG_VERSION
from questionnaire_flow.errors import CatalogError
from questionnaire_flow.models.question import Question

logger = logging.getLogger(__name__)

# Bundled catalog shipped as package data.
DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "questionnaire.yaml"


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class QuestionCatalog:
    """Immutable, ordered collection of questions with lookup by ID.

    Construction validates the catalog as a whole and raises
    :class:`~questionnaire_flow.errors.CatalogError` on:

      - duplicate question IDs
      - branch rules injecting unknown question IDs
      - feedback predicates referencing unknown question IDs
      - no ``essential`` question (the initial schedule would be empty)
    """

    def __init__(
        self,
        questions: Iterable[Question],
        version: str = DEFAULT_CATALOG_VERSION,
        aggregate_keys: Iterable[str] = (),
    ) -> None:
        self._questions: tuple[Question, ...] = tuple(questions)
        self.version = str(version)
        self.aggregate_keys: tuple[str, ...] = tuple(aggregate_keys)
        self._by_id: dict[str, Question] = {}

        for q in self._questions:
            if q.id in self._by_id:
                raise CatalogError(f"Duplicate question id '{q.id}'")
            self._by_id[q.id] = q
        self._validate_references()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | str | None = None) -> QuestionCatalog:
        """Parse a catalog YAML file (default: the bundled catalog).

        Raises ``FileNotFoundError`` if the file is missing and
        ``CatalogError`` if its content is malformed.
        """
        path = Path(path) if path is not None else DEFAULT_CATALOG_PATH
        raw = load_yaml(path)
        if not isinstance(raw, dict):
            raise CatalogError(f"Catalog {path} must be a mapping with a 'questions' list")
        catalog = cls.from_dict(raw)
        logger.info(
            "QuestionCatalog loaded from %s: %d questions (%d essential), version %s",
            path,
            len(catalog),
            len(catalog.essential_ids()),
            catalog.version,
        )
        return catalog

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> QuestionCatalog:
        """Build a catalog from an already-parsed mapping."""
        questions: list[Question] = []
        for i, q_dict in enumerate(raw.get("questions") or []):
            try:
                questions.append(Question.model_validate(q_dict))
            except PydanticValidationError as exc:
                qid = q_dict.get("id", f"#{i}") if isinstance(q_dict, dict) else f"#{i}"
                raise CatalogError(f"Invalid question {qid}: {exc}") from exc
        return cls(
            questions,
            version=raw.get("version", DEFAULT_CATALOG_VERSION),
            aggregate_keys=raw.get("aggregate_metadata") or (),
        )

    def _validate_references(self) -> None:
        if not self.essential_ids():
            raise CatalogError("Catalog has no essential questions")

        for q in self._questions:
            for rule in q.branching:
                missing = [qid for qid in rule.inject if qid not in self._by_id]
                if missing:
                    raise CatalogError(
                        f"Question '{q.id}' branches to unknown questions {missing}"
                    )
            for case in q.feedback.cases:
                missing = [p.qid for p in case.when if p.qid not in self._by_id]
                if missing:
                    raise CatalogError(
                        f"Feedback in '{q.id}' references unknown questions {missing}"
                    )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, question_id: str) -> Question:
        """Look up a question by ID.

        Raises:
            KeyError: if the ID is not in the catalog.
        """
        try:
            return self._by_id[question_id]
        except KeyError:
            raise KeyError(f"Question not found: {question_id}") from None

    def essential_ids(self) -> list[str]:
        """IDs of all ``essential`` questions, in catalog order."""
        return [q.id for q in self._questions if q.category == "essential"]

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._by_id

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __len__(self) -> int:
        return len(self._questions)
