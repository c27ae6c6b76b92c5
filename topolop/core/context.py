"""Per-run state passed explicitly to every component."""

import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..models.entity import Entity
from ..models.enums import EntityType
from .builder import IssueBuilder, IssueDraft, utc_now
from .cancellation import CancellationToken
from .exceptions import InvalidPathError
from .paths import NormalizedPath, PathNormalizer
from .registry import EntityRegistry
from .severity import SeverityMapper

if TYPE_CHECKING:
    from ..config import TopolopConfig
    from ..correlation.engine import CorrelationEngine

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Everything one report build needs; nothing lives at module level."""

    project_root: str
    config: "TopolopConfig"
    normalizer: PathNormalizer
    severity_mapper: SeverityMapper
    registry: EntityRegistry
    builder: IssueBuilder
    engine: "CorrelationEngine"
    token: CancellationToken
    clock: Callable[[], datetime] = utc_now
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def create(
        cls,
        config: "TopolopConfig",
        token: CancellationToken | None = None,
        clock: Callable[[], datetime] | None = None,
        run_id: str | None = None,
    ) -> "RunContext":
        from ..correlation.engine import CorrelationEngine

        clock = clock or utc_now
        project_root = str(Path(config.project_root).resolve())
        mapper = SeverityMapper()
        return cls(
            project_root=project_root,
            config=config,
            normalizer=PathNormalizer(project_root, case_insensitive=config.case_insensitive_paths),
            severity_mapper=mapper,
            registry=EntityRegistry(),
            builder=IssueBuilder(mapper, clock=clock),
            engine=CorrelationEngine(
                line_threshold=config.line_threshold,
                pattern_overlap_requires_same_type=config.pattern_overlap_requires_same_type,
                clock=clock,
            ),
            token=token or CancellationToken(),
            clock=clock,
            run_id=run_id or uuid.uuid4().hex,
        )

    def for_adapter(self, name: str, options: Mapping[str, Any] | None = None, token: CancellationToken | None = None) -> "AdapterContext":
        return AdapterContext(
            run=self,
            tool_name=name,
            options=dict(options or {}),
            token=token or self.token.child(),
        )


@dataclass
class AdapterContext:
    """Adapter-facing view of the run: path and entity helpers plus options."""

    run: RunContext
    tool_name: str
    options: dict[str, Any]
    token: CancellationToken

    @property
    def project_root(self) -> str:
        return self.run.project_root

    def normalize_path(
        self,
        identifier: object,
        file_table: Sequence[str] | Mapping[object, str] | None = None,
    ) -> NormalizedPath:
        return self.run.normalizer.normalize(identifier, self.tool_name, file_table)

    def entity_for(
        self,
        identifier: object,
        entity_type: EntityType = EntityType.FILE,
        name: str | None = None,
        file_table: Sequence[str] | Mapping[object, str] | None = None,
    ) -> Entity:
        """Normalize an identifier and return its registry entity.

        Raises:
            InvalidPathError: If the identifier is not a usable path
        """
        normalized = self.normalize_path(identifier, file_table)
        return self.run.registry.get_or_create(
            normalized.canonical_path,
            entity_type,
            name=name,
            tool_name=self.tool_name,
            original_identifier=normalized.original,
            confidence=normalized.confidence,
            flags=normalized.flags(),
        )

    def draft(
        self,
        path: object,
        *,
        entity_type: EntityType = EntityType.FILE,
        entity_name: str | None = None,
        file_table: Sequence[str] | Mapping[object, str] | None = None,
        **fields: Any,
    ) -> IssueDraft:
        """Start an IssueDraft for this tool attached to path's entity.

        An unusable path does not raise here; the draft carries the error
        and is rejected by the builder with the reason recorded.
        """
        entity: Entity | None = None
        entity_error: str | None = None
        try:
            entity = self.entity_for(path, entity_type, entity_name, file_table)
        except InvalidPathError as e:
            entity_error = str(e)
        return IssueDraft(entity=entity, entity_error=entity_error, tool_name=self.tool_name, **fields)
