"""
Agent Configuration Validation
Checks workflow config JSON and reports field-level errors separately
from deprecation warnings. Malformed input never raises.
"""

import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
    ValidationError as PydanticValidationError
)

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
E164_MESSAGE = "Phone number must be in E.164 format (e.g., +17708304765)"
DECIMAL_PATTERN = r"^\d+(\.\d{1,2})?$"

REQUIRED_TOP_LEVEL_KEYS = ("agent", "workflow")
REQUIRED_SECTIONS = ("llm", "tts", "stt")
DEPRECATED_TOP_LEVEL_SECTIONS = ("llm", "tts", "stt", "rag")
END_CALL_FORBIDDEN_KEYS = ("transitions", "actions", "system_prompt", "static_text", "rag")


def is_e164(phone_number: str) -> bool:
    return bool(E164_PATTERN.match(phone_number or ""))


def _check_e164(value: str) -> str:
    if not is_e164(value):
        raise ValueError(E164_MESSAGE)
    return value


PhoneNumber = Annotated[str, AfterValidator(_check_e164)]
DecimalString = Annotated[str, Field(pattern=DECIMAL_PATTERN)]


# ============================================
# WORKFLOW SECTION MODELS
# ============================================

class _Section(BaseModel):
    model_config = ConfigDict(extra="allow")


class AgentMetadata(_Section):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    version: str = "1.0.0"
    tenant_id: Optional[str] = None


class InterruptionSettings(_Section):
    enabled: bool = True
    delay_ms: int = Field(default=300, ge=0, le=5000)
    resume_prompt: str = "Go ahead"


class RecordingSettings(_Section):
    enabled: bool = False
    track: Literal["inbound", "outbound", "both"] = "both"
    channels: Literal["mono", "dual"] = "dual"


class Transition(_Section):
    condition: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    priority: int = 0


class NodeActions(_Section):
    on_entry: Optional[List[str]] = None
    on_exit: Optional[List[str]] = None


class VariableExtraction(_Section):
    variable_name: str = Field(..., min_length=1)
    extraction_prompt: str = Field(..., min_length=1)
    default_value: Optional[str] = None


class RagSection(_Section):
    enabled: Optional[bool] = None
    search_mode: Optional[Literal["vector", "fts", "hybrid"]] = None
    top_k: Optional[int] = Field(default=None, ge=1, le=50)
    relevance_filter: Optional[bool] = None
    faiss_index_path: Optional[str] = None
    faiss_mapping_path: Optional[str] = None
    sqlite_db_path: Optional[str] = None
    rrf_k: Optional[int] = None
    vector_weight: Optional[float] = Field(default=None, ge=0, le=1)
    fts_weight: Optional[float] = Field(default=None, ge=0, le=1)
    hnsw_ef_search: Optional[int] = None
    bedrock_model: Optional[str] = None
    bedrock_dimensions: Optional[int] = None


class _BaseNode(_Section):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    interruptions_enabled: Optional[bool] = None
    transitions: Optional[List[Transition]] = None
    actions: Optional[NodeActions] = None


class StandardNode(_BaseNode):
    type: Literal["standard"] = "standard"
    system_prompt: Optional[str] = None
    static_text: Optional[str] = None
    rag: Optional[RagSection] = None

    @model_validator(mode="after")
    def _one_prompt_source(self):
        if bool(self.system_prompt) == bool(self.static_text):
            raise ValueError("Node must have either system_prompt OR static_text, but not both")
        return self


class RetrieveVariableNode(_BaseNode):
    type: Literal["retrieve_variable"]
    variables: Optional[List[VariableExtraction]] = None
    variable_name: Optional[str] = None
    extraction_prompt: Optional[str] = None
    default_value: Optional[str] = None

    @model_validator(mode="after")
    def _has_variables(self):
        batch = bool(self.variables)
        legacy = bool(self.variable_name) and bool(self.extraction_prompt)
        if not (batch or legacy):
            raise ValueError(
                "retrieve_variable node must have either variables array or variable_name + extraction_prompt"
            )
        return self

    @property
    def uses_legacy_variable(self) -> bool:
        return not self.variables and bool(self.variable_name)


class EndCallNode(_BaseNode):
    type: Literal["end_call"]


NODE_MODELS = {
    "standard": StandardNode,
    "retrieve_variable": RetrieveVariableNode,
    "end_call": EndCallNode,
}


class WorkflowSection(_Section):
    initial_node: str = Field(..., min_length=1)
    global_prompt: Optional[str] = None
    history_window: int = Field(default=0, ge=0)
    max_transitions: int = Field(default=50, ge=1, le=1000)
    interruption_settings: Optional[InterruptionSettings] = None
    recording: Optional[RecordingSettings] = None
    nodes: List[Dict[str, Any]] = Field(..., min_length=1)


class LlmSection(_Section):
    enabled: bool = True
    model: Optional[str] = None
    service_tier: Literal["auto", "default"] = "auto"
    temperature: float = Field(default=1.0, ge=0, le=2)
    max_tokens: int = Field(default=150, ge=1, le=10000)
    base_url: Optional[str] = None
    api_version: Optional[str] = None


class TtsSection(_Section):
    enabled: bool = True
    voice_id: Optional[str] = None
    model: str = "eleven_turbo_v2_5"
    stability: float = Field(default=0.5, ge=0, le=1)
    similarity_boost: float = Field(default=0.75, ge=0, le=1)
    style: float = Field(default=0.0, ge=0, le=1)
    use_speaker_boost: bool = True
    enable_ssml_parsing: bool = False
    pronunciation_dictionaries_enabled: bool = True
    pronunciation_dictionary_ids: Optional[List[str]] = None


class SttSection(_Section):
    model: str = "flux-general-en"
    sample_rate: int = 8000
    eager_eot_threshold: Optional[float] = None
    eot_threshold: Optional[float] = None
    eot_timeout_ms: Optional[int] = None


class AutoHangup(_Section):
    enabled: bool = True


SECTION_MODELS = {
    "llm": LlmSection,
    "tts": TtsSection,
    "stt": SttSection,
    "rag": RagSection,
}


# ============================================
# RESULT
# ============================================

@dataclass
class ConfigValidationResult:
    """Outcome of validating a workflow config"""
    errors: List[Dict[str, str]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, path: str, message: str) -> None:
        self.errors.append({"path": path, "message": message})


def _join_path(parts: Tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in parts)


def pydantic_issues(exc: PydanticValidationError, prefix: Tuple[Any, ...] = ()) -> List[Dict[str, str]]:
    """Flatten a pydantic error into {path, message} issues"""
    issues = []
    for err in exc.errors():
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        issues.append({"path": _join_path(tuple(prefix) + tuple(err.get("loc", ()))), "message": message})
    return issues


def _validate_model(model, data: Any, path: Tuple[Any, ...], result: ConfigValidationResult):
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        result.errors.extend(pydantic_issues(exc, path))
        return None


# ============================================
# VALIDATION
# ============================================

def check_required_top_level_keys(config: Any) -> List[str]:
    """Required top-level keys missing from an import payload"""
    if not isinstance(config, dict):
        return list(REQUIRED_TOP_LEVEL_KEYS)
    return [key for key in REQUIRED_TOP_LEVEL_KEYS if key not in config]


def _validate_nodes(
    nodes: List[Any],
    result: ConfigValidationResult
) -> List[Any]:
    validated = []
    for index, raw in enumerate(nodes):
        path = ("workflow", "nodes", index)
        if not isinstance(raw, dict):
            result.add_error(_join_path(path), "Node must be an object")
            continue

        node_type = raw.get("type") or "standard"
        model = NODE_MODELS.get(node_type)
        if model is None:
            result.add_error(
                _join_path(path + ("type",)),
                f"Invalid node type '{node_type}'. Expected one of: {', '.join(NODE_MODELS)}"
            )
            continue

        if node_type == "end_call":
            forbidden = [key for key in END_CALL_FORBIDDEN_KEYS if raw.get(key) is not None]
            for key in forbidden:
                result.add_error(_join_path(path + (key,)), f"end_call nodes cannot have {key}")
            if forbidden:
                continue

        node = _validate_model(model, raw, path, result)
        if node is None:
            continue

        if isinstance(node, RetrieveVariableNode) and node.uses_legacy_variable:
            result.warnings.append(
                f"Node '{node.id}' uses deprecated variable_name/extraction_prompt; use the variables array instead"
            )
        validated.append(node)
    return validated


def _check_graph(workflow: WorkflowSection, nodes: List[Any], result: ConfigValidationResult) -> None:
    node_ids = [node.id for node in nodes]
    known = set(node_ids)

    if workflow.initial_node not in known:
        result.add_error("workflow.initial_node", "Initial node must exist in the nodes array")

    duplicates = sorted({node_id for node_id in node_ids if node_ids.count(node_id) > 1})
    if duplicates:
        result.add_error("workflow.nodes", f"All node IDs must be unique (duplicates: {', '.join(duplicates)})")

    for index, node in enumerate(nodes):
        for t_index, transition in enumerate(node.transitions or []):
            if transition.target not in known:
                result.add_error(
                    f"workflow.nodes.{index}.transitions.{t_index}.target",
                    f"Transition target '{transition.target}' does not match any node ID"
                )

    if not any(isinstance(node, EndCallNode) for node in nodes):
        result.add_error("workflow.nodes", "Workflow must have at least one end_call node")

    if workflow.initial_node in known:
        edges = {node.id: [t.target for t in (node.transitions or [])] for node in nodes}
        reachable = {workflow.initial_node}
        pending = [workflow.initial_node]
        while pending:
            for target in edges.get(pending.pop(), []):
                if target in known and target not in reachable:
                    reachable.add(target)
                    pending.append(target)
        for node_id in node_ids:
            if node_id not in reachable:
                result.warnings.append(f"Node '{node_id}' is not reachable from the initial node")


def validate_agent_config(config: Any) -> ConfigValidationResult:
    """
    Validate a full agent workflow config

    Args:
        config: Untyped JSON value (normally the version's configJson)

    Returns:
        ConfigValidationResult with errors (blocking) and warnings (deprecations)
    """
    result = ConfigValidationResult()

    if not isinstance(config, dict):
        result.add_error("", "Configuration must be a JSON object")
        return result

    for key in REQUIRED_TOP_LEVEL_KEYS:
        if key not in config:
            result.add_error(key, f"Missing required top-level key: {key}")

    if "agent" in config:
        _validate_model(AgentMetadata, config["agent"], ("agent",), result)

    raw_workflow = config.get("workflow")
    workflow_dict = raw_workflow if isinstance(raw_workflow, dict) else {}

    # llm/tts/stt live under workflow; top-level placement is still accepted
    for name in REQUIRED_SECTIONS:
        if name not in workflow_dict and name not in config:
            result.add_error(f"workflow.{name}", f"Missing required section: {name}")

    for name, model in SECTION_MODELS.items():
        if name in workflow_dict:
            _validate_model(model, workflow_dict[name], ("workflow", name), result)
        if name in config:
            _validate_model(model, config[name], (name,), result)
            if name in DEPRECATED_TOP_LEVEL_SECTIONS:
                result.warnings.append(
                    f"Top-level '{name}' section is deprecated; move it under 'workflow.{name}'"
                )

    if "auto_hangup" in config:
        _validate_model(AutoHangup, config["auto_hangup"], ("auto_hangup",), result)

    if "workflow" not in config:
        return result

    workflow = _validate_model(WorkflowSection, raw_workflow, ("workflow",), result)
    if workflow is None:
        return result

    nodes = _validate_nodes(workflow.nodes, result)
    if len(nodes) == len(workflow.nodes):
        _check_graph(workflow, nodes, result)

    return result
