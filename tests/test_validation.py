"""
Tests for workflow config validation
"""

import pytest

from agent_console.services.validation import (
    check_required_top_level_keys,
    is_e164,
    validate_agent_config
)


def _paths(result):
    return [error["path"] for error in result.errors]


def _messages(result):
    return [error["message"] for error in result.errors]


class TestWorkflowValidation:
    """Tests for validate_agent_config"""

    def test_valid_config(self, workflow_config):
        result = validate_agent_config(workflow_config)
        assert result.valid
        assert result.warnings == []

    def test_non_object_config(self):
        result = validate_agent_config(["not", "a", "config"])
        assert not result.valid

    def test_missing_top_level_keys(self):
        """Test agent and workflow are required"""
        result = validate_agent_config({})
        assert "Missing required top-level key: agent" in _messages(result)
        assert "Missing required top-level key: workflow" in _messages(result)

    def test_missing_llm_section(self, workflow_config):
        del workflow_config["workflow"]["llm"]
        result = validate_agent_config(workflow_config)
        assert "workflow.llm" in _paths(result)

    def test_top_level_section_is_deprecated(self, workflow_config):
        """Test top-level llm is accepted with a warning"""
        workflow_config["llm"] = workflow_config["workflow"].pop("llm")
        result = validate_agent_config(workflow_config)
        assert result.valid
        assert any("deprecated" in warning for warning in result.warnings)

    def test_initial_node_must_exist(self, workflow_config):
        workflow_config["workflow"]["initial_node"] = "missing"
        result = validate_agent_config(workflow_config)
        assert "Initial node must exist in the nodes array" in _messages(result)

    def test_transition_target_must_exist(self, workflow_config):
        """Test dangling transitions report the exact path"""
        workflow_config["workflow"]["nodes"][0]["transitions"][0]["target"] = "nowhere"
        result = validate_agent_config(workflow_config)
        assert "workflow.nodes.0.transitions.0.target" in _paths(result)

    def test_duplicate_node_ids(self, workflow_config):
        nodes = workflow_config["workflow"]["nodes"]
        nodes.append(dict(nodes[1]))
        result = validate_agent_config(workflow_config)
        assert any("unique" in message for message in _messages(result))

    def test_end_call_node_required(self, workflow_config):
        workflow_config["workflow"]["nodes"] = [
            {"id": "greeting", "name": "Greeting", "system_prompt": "Hi"}
        ]
        result = validate_agent_config(workflow_config)
        assert "Workflow must have at least one end_call node" in _messages(result)

    def test_end_call_node_cannot_have_transitions(self, workflow_config):
        workflow_config["workflow"]["nodes"][1]["transitions"] = [
            {"condition": "always", "target": "greeting"}
        ]
        result = validate_agent_config(workflow_config)
        assert "workflow.nodes.1.transitions" in _paths(result)

    @pytest.mark.parametrize("prompt_fields", [
        {},
        {"system_prompt": "Talk", "static_text": "Hello"},
    ])
    def test_standard_node_needs_exactly_one_prompt(self, workflow_config, prompt_fields):
        node = {"id": "greeting", "name": "Greeting", "type": "standard", **prompt_fields}
        node["transitions"] = [{"condition": "done", "target": "goodbye"}]
        workflow_config["workflow"]["nodes"][0] = node
        result = validate_agent_config(workflow_config)
        assert "Node must have either system_prompt OR static_text, but not both" in _messages(result)

    def test_invalid_node_type(self, workflow_config):
        workflow_config["workflow"]["nodes"][0]["type"] = "webhook"
        result = validate_agent_config(workflow_config)
        assert "workflow.nodes.0.type" in _paths(result)

    def test_legacy_variable_node_warns(self, workflow_config):
        """Test single-variable retrieve nodes still validate with a warning"""
        workflow_config["workflow"]["nodes"].insert(1, {
            "id": "collect",
            "name": "Collect name",
            "type": "retrieve_variable",
            "variable_name": "caller_name",
            "extraction_prompt": "Extract the caller's name",
            "transitions": [{"condition": "captured", "target": "goodbye"}]
        })
        workflow_config["workflow"]["nodes"][0]["transitions"][0]["target"] = "collect"
        result = validate_agent_config(workflow_config)
        assert result.valid
        assert any("collect" in warning for warning in result.warnings)

    def test_unreachable_node_warns(self, workflow_config):
        workflow_config["workflow"]["nodes"].append(
            {"id": "orphan", "name": "Orphan", "static_text": "Never said"}
        )
        result = validate_agent_config(workflow_config)
        assert result.valid
        assert any("orphan" in warning for warning in result.warnings)

    def test_out_of_range_llm_temperature(self, workflow_config):
        workflow_config["workflow"]["llm"]["temperature"] = 5
        result = validate_agent_config(workflow_config)
        assert "workflow.llm.temperature" in _paths(result)


class TestValidationHelpers:
    """Tests for small validation helpers"""

    @pytest.mark.parametrize("number,expected", [
        ("+17708304765", True),
        ("+442071838750", True),
        ("17708304765", False),
        ("+07708304765", False),
        ("+1 770 830 4765", False),
        ("", False),
    ])
    def test_is_e164(self, number, expected):
        assert is_e164(number) is expected

    def test_required_top_level_keys(self):
        assert check_required_top_level_keys({"agent": {}}) == ["workflow"]
        assert check_required_top_level_keys(None) == ["agent", "workflow"]
