"""Core data structures for the forge pipeline.

All types use Pydantic for validation and serialization.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, Field


class Status(str, Enum):
    """Lifecycle of a project run."""

    IDLE = "idle"
    CLARIFYING = "clarifying"
    GENERATING = "generating"
    READY = "ready"
    ERROR = "error"


class ProjectMode(str, Enum):
    """How many experts take part in a forge run."""

    LITE = "lite"
    NORMAL = "normal"
    DETAILED = "detailed"


class Language(str, Enum):
    """Language the experts write in."""

    EN = "EN"
    FR = "FR"
    ES = "ES"
    DE = "DE"


LANGUAGE_NAMES: dict[Language, str] = {
    Language.EN: "English",
    Language.FR: "French",
    Language.ES: "Spanish",
    Language.DE: "German",
}


class ExpertRole(str, Enum):
    """Closed set of expert perspectives. Values are identifiers, not labels."""

    STRATEGIST = "strategist"
    MARKET = "market"
    PRODUCT = "product"
    COMPONENTS = "components"
    UX = "ux"
    ARCHITECT = "architect"
    DATA = "data"
    API = "api"
    SECURITY = "security"
    QA = "qa"
    DELIVERY = "delivery"
    WRITER = "writer"
    AGENT_INITIALIZER = "agent_initializer"
    AUDITOR = "auditor"
    PROTOTYPER = "prototyper"


ROLE_LABELS: dict[ExpertRole, str] = {
    ExpertRole.STRATEGIST: "Product Strategist",
    ExpertRole.MARKET: "Market Analyst",
    ExpertRole.PRODUCT: "Product Manager",
    ExpertRole.COMPONENTS: "Design System Lead",
    ExpertRole.UX: "UX Researcher",
    ExpertRole.ARCHITECT: "System Architect",
    ExpertRole.DATA: "Data Architect",
    ExpertRole.API: "API Designer",
    ExpertRole.SECURITY: "Security Analyst",
    ExpertRole.QA: "QA Lead",
    ExpertRole.DELIVERY: "Release Manager",
    ExpertRole.WRITER: "Technical Writer",
    ExpertRole.AGENT_INITIALIZER: "Agent Initializer",
    ExpertRole.AUDITOR: "Quality Auditor",
    ExpertRole.PROTOTYPER: "Synthesis Expert",
}


class ArtifactKind(str, Enum):
    """What kind of document an artifact holds."""

    TEXT = "text"
    MARKET_ANALYSIS = "market-analysis"
    UX_FLOW = "ux-flow"
    DESIGN_SYSTEM = "design-system"
    DATA_SCHEMA = "data-schema"
    API_SPEC = "api-spec"
    SECURITY_SPEC = "security-spec"
    TEST_STRATEGY = "test-strategy"
    ROADMAP = "roadmap"
    AGENT_SPEC = "agent-spec"
    AUDIT = "audit"
    PROTOTYPE = "prototype"


ROLE_ARTIFACT_KINDS: dict[ExpertRole, ArtifactKind] = {
    ExpertRole.STRATEGIST: ArtifactKind.TEXT,
    ExpertRole.MARKET: ArtifactKind.MARKET_ANALYSIS,
    ExpertRole.PRODUCT: ArtifactKind.TEXT,
    ExpertRole.COMPONENTS: ArtifactKind.DESIGN_SYSTEM,
    ExpertRole.UX: ArtifactKind.UX_FLOW,
    ExpertRole.ARCHITECT: ArtifactKind.TEXT,
    ExpertRole.DATA: ArtifactKind.DATA_SCHEMA,
    ExpertRole.API: ArtifactKind.API_SPEC,
    ExpertRole.SECURITY: ArtifactKind.SECURITY_SPEC,
    ExpertRole.QA: ArtifactKind.TEST_STRATEGY,
    ExpertRole.DELIVERY: ArtifactKind.ROADMAP,
    ExpertRole.WRITER: ArtifactKind.TEXT,
    ExpertRole.AGENT_INITIALIZER: ArtifactKind.AGENT_SPEC,
    ExpertRole.AUDITOR: ArtifactKind.AUDIT,
    ExpertRole.PROTOTYPER: ArtifactKind.PROTOTYPE,
}

# Order matters: artifacts are produced in exactly this order.
ROLE_ROSTERS: dict[ProjectMode, list[ExpertRole]] = {
    ProjectMode.LITE: [
        ExpertRole.PRODUCT,
        ExpertRole.UX,
        ExpertRole.ARCHITECT,
        ExpertRole.DATA,
    ],
    ProjectMode.NORMAL: [
        ExpertRole.MARKET,
        ExpertRole.PRODUCT,
        ExpertRole.UX,
        ExpertRole.ARCHITECT,
        ExpertRole.DATA,
        ExpertRole.API,
        ExpertRole.SECURITY,
        ExpertRole.QA,
        ExpertRole.DELIVERY,
        ExpertRole.AUDITOR,
    ],
    ProjectMode.DETAILED: [
        ExpertRole.STRATEGIST,
        ExpertRole.MARKET,
        ExpertRole.PRODUCT,
        ExpertRole.COMPONENTS,
        ExpertRole.UX,
        ExpertRole.ARCHITECT,
        ExpertRole.DATA,
        ExpertRole.API,
        ExpertRole.SECURITY,
        ExpertRole.QA,
        ExpertRole.DELIVERY,
        ExpertRole.WRITER,
        ExpertRole.AGENT_INITIALIZER,
        ExpertRole.AUDITOR,
    ],
}


# ── Clarification ─────────────────────────────────────────────────────


class QuestionKind(str, Enum):
    TEXT = "text"
    CHOICE = "choice"


class Question(BaseModel):
    """A follow-up question produced by the clarification step."""

    id: str
    text: str
    kind: QuestionKind = QuestionKind.TEXT
    options: list[str] | None = None


# ── Foundations ───────────────────────────────────────────────────────


class Intent(BaseModel):
    """Normalized goal/target/constraints extracted from the idea."""

    goal: str
    target: str
    constraints: list[str] = Field(default_factory=list)


class Module(BaseModel):
    name: str
    description: str = ""
    features: list[str] = Field(default_factory=list)


class ModuleMap(BaseModel):
    """Decomposition of the product into functional modules."""

    modules: list[Module] = Field(default_factory=list)


# ── Artifacts ─────────────────────────────────────────────────────────


class Variant(BaseModel):
    """An alternative take (A vs B) proposed by an expert."""

    label: str
    content: str = ""


class Artifact(BaseModel):
    """One generated document attributed to an expert role."""

    id: str
    role: ExpertRole
    title: str
    summary: str
    content: str
    kind: ArtifactKind
    confidence: float = Field(ge=0.0, le=1.0)
    vitals: dict[str, Any] | None = None
    audit: dict[str, Any] | None = None
    design_system: dict[str, Any] | None = None
    variants: list[Variant] = Field(default_factory=list)

    @property
    def role_label(self) -> str:
        return ROLE_LABELS[self.role]


# ── Project state ─────────────────────────────────────────────────────


def _new_project_id() -> str:
    return uuid.uuid4().hex


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectState(BaseModel):
    """The aggregate state of one project.

    Owned by the caller. Pipeline steps only read it and emit
    StateUpdate objects that the owner folds in with apply_update().
    """

    id: str = Field(default_factory=_new_project_id)
    idea: str
    mode: ProjectMode = ProjectMode.NORMAL
    language: Language = Language.EN
    created_at: str = Field(default_factory=_utc_now)
    status: Status = Status.IDLE
    current_step: str = ""
    questions: list[Question] = Field(default_factory=list)
    answers: dict[str, str] = Field(default_factory=dict)
    intent: Intent | None = None
    app_map: ModuleMap | None = None
    artifacts: list[Artifact] = Field(default_factory=list)


class StateUpdate(BaseModel):
    """A partial ProjectState. Only explicitly set fields are applied."""

    status: Status | None = None
    current_step: str | None = None
    questions: list[Question] | None = None
    answers: dict[str, str] | None = None
    intent: Intent | None = None
    app_map: ModuleMap | None = None
    artifacts: list[Artifact] | None = None


ProgressEmitter = Callable[[StateUpdate], None]
