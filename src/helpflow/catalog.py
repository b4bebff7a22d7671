"""
Tutorial catalog.

Tutorials are described as plain data (built in below, or loaded from YAML)
and validated with pydantic before they become :class:`~helpflow.models.Tutorial`
values. Step validation functions cannot live in YAML; hosts attach them with
:meth:`TutorialCatalog.bind_validator`.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .models import SkillLevel, Tutorial, TutorialStep

logger = logging.getLogger(__name__)


class StepSpec(BaseModel):
    id: str
    title: str
    description: str = ""
    target_ref: Optional[str] = None
    duration_sec: Optional[float] = Field(default=None, gt=0)
    interaction_required: bool = False
    hints: List[str] = Field(default_factory=list)

    def to_step(self) -> TutorialStep:
        return TutorialStep(
            id=self.id,
            title=self.title,
            description=self.description,
            target_ref=self.target_ref,
            duration_sec=self.duration_sec,
            interaction_required=self.interaction_required,
            hints=tuple(self.hints),
        )


class TutorialSpec(BaseModel):
    id: str
    title: str
    description: str = ""
    category: SkillLevel = SkillLevel.BEGINNER
    estimated_minutes: int = Field(default=5, ge=0)
    learning_objectives: List[str] = Field(default_factory=list)
    steps: List[StepSpec]

    @field_validator("steps")
    def validate_steps(cls, v):
        if not v:
            raise ValueError("a tutorial needs at least one step")
        ids = [s.id for s in v]
        if len(ids) != len(set(ids)):
            raise ValueError("step ids must be unique within a tutorial")
        return v

    def to_tutorial(self) -> Tutorial:
        return Tutorial(
            id=self.id,
            title=self.title,
            description=self.description,
            category=self.category,
            estimated_minutes=self.estimated_minutes,
            learning_objectives=tuple(self.learning_objectives),
            steps=tuple(s.to_step() for s in self.steps),
        )


BUILTIN_TUTORIALS: List[Dict[str, Any]] = [
    {
        "id": "devflow-basics",
        "title": "DevFlow Studio Basics",
        "description": "Learn the fundamentals of visual development planning",
        "category": "beginner",
        "estimated_minutes": 10,
        "learning_objectives": [
            "Create and manage nodes",
            "Connect nodes with relationships",
            "Organize your development workflow",
        ],
        "steps": [
            {
                "id": "welcome",
                "title": "Welcome to DevFlow Studio",
                "description": "Your visual development planning workspace",
                "duration_sec": 30,
            },
            {
                "id": "create-node",
                "title": "Creating Your First Node",
                "description": "Learn how to add nodes to your workspace",
                "target_ref": '[data-tutorial="add-node-button"]',
                "duration_sec": 45,
                "interaction_required": True,
                "hints": ["Look for the plus icon in the toolbar", "You can also right-click on the canvas"],
            },
            {
                "id": "node-types",
                "title": "Understanding Node Types",
                "description": "Different types of nodes for different purposes",
                "duration_sec": 60,
            },
        ],
    },
    {
        "id": "regexr-intro",
        "title": "Regexr++ Introduction",
        "description": "Master visual regex building with AI assistance",
        "category": "intermediate",
        "estimated_minutes": 15,
        "learning_objectives": [
            "Build regex patterns visually",
            "Test patterns in real-time",
            "Generate code for multiple languages",
        ],
        "steps": [
            {
                "id": "regex-welcome",
                "title": "Welcome to Regexr++",
                "description": "Visual regex building made simple",
                "duration_sec": 45,
            },
        ],
    },
]


class TutorialCatalog:
    """Ordered collection of tutorials, keyed by id."""

    def __init__(self, tutorials: Iterable[Tutorial] = ()):
        self._tutorials: Dict[str, Tutorial] = {}
        for tutorial in tutorials:
            self.add(tutorial)

    @classmethod
    def builtin(cls) -> "TutorialCatalog":
        return cls.from_data(BUILTIN_TUTORIALS)

    @classmethod
    def from_data(cls, data: Iterable[Dict[str, Any]]) -> "TutorialCatalog":
        return cls(TutorialSpec.model_validate(item).to_tutorial() for item in data)

    @classmethod
    def from_file(cls, path: Path) -> "TutorialCatalog":
        """Load tutorials from YAML: a list, or a mapping with a ``tutorials`` list."""
        if not path.exists():
            raise FileNotFoundError(f"Tutorial catalog not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or []

        if isinstance(data, dict):
            data = data.get("tutorials", [])
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a list of tutorials")
        try:
            catalog = cls.from_data(data)
        except ValidationError as e:
            raise ValueError(f"{path}: invalid tutorial definition ({e.error_count()} error(s))") from e
        logger.info(f"Loaded {len(catalog)} tutorials from {path}")
        return catalog

    def add(self, tutorial: Tutorial) -> None:
        if tutorial.id in self._tutorials:
            logger.warning(f"Replacing tutorial {tutorial.id}")
        self._tutorials[tutorial.id] = tutorial

    def get(self, tutorial_id: str) -> Optional[Tutorial]:
        return self._tutorials.get(tutorial_id)

    @property
    def tutorials(self) -> List[Tutorial]:
        return list(self._tutorials.values())

    def __len__(self) -> int:
        return len(self._tutorials)

    def __contains__(self, tutorial_id: object) -> bool:
        return tutorial_id in self._tutorials

    def bind_validator(
        self,
        step_id: str,
        validate: Callable[[], bool],
        tutorial_id: Optional[str] = None,
    ) -> int:
        """Attach ``validate`` to every step named ``step_id``.

        Restrict to one tutorial with ``tutorial_id``. Returns the number of
        steps bound.
        """
        bound = 0
        for tid, tutorial in list(self._tutorials.items()):
            if tutorial_id is not None and tid != tutorial_id:
                continue
            steps = tuple(
                replace(step, validate=validate) if step.id == step_id else step for step in tutorial.steps
            )
            hits = sum(1 for step in tutorial.steps if step.id == step_id)
            if hits:
                self._tutorials[tid] = replace(tutorial, steps=steps)
                bound += hits
        if not bound:
            logger.warning(f"No step named {step_id} to bind a validator to")
        return bound

    def recommend_for(self, skill: SkillLevel, completed: Iterable[str] = ()) -> List[Tutorial]:
        """Tutorials at most one tier above ``skill`` that are not completed yet."""
        done = set(completed)
        return [
            t for t in self._tutorials.values()
            if t.category.rank <= skill.rank + 1 and t.id not in done
        ]


__all__ = ["StepSpec", "TutorialSpec", "TutorialCatalog", "BUILTIN_TUTORIALS"]
