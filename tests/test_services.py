"""
Tests for config store services
"""

import threading
from unittest.mock import patch

import pytest

from agent_console.core.exceptions import Conflict, NotFound, ValidationFailed
from agent_console.db.base import get_session_factory
from agent_console.db.models import AgentVersion
from agent_console.services import (
    AgentService,
    PhoneConfigService,
    QueryContext,
    RagConfigService,
    VoiceConfigService
)


@pytest.fixture
def ctx_a(tenants):
    return QueryContext(tenant_id=tenants["a"].id)


@pytest.fixture
def ctx_b(tenants):
    return QueryContext(tenant_id=tenants["b"].id)


@pytest.fixture
def global_ctx():
    return QueryContext(tenant_id=None, is_global_user=True)


def _active_versions(db, agent_id):
    db.expire_all()
    return db.query(AgentVersion).filter(
        AgentVersion.agent_id == agent_id,
        AgentVersion.is_active == True
    ).all()


class TestAgentVersioning:
    """Tests for agent versions and activation"""

    def test_create_agent_starts_with_active_version_one(self, db_session, ctx_a, workflow_config):
        """Test a new agent gets version 1, active"""
        created = AgentService(db_session).create_agent("Intake", workflow_config, ctx_a, created_by="admin@tenant-a.example.com")

        version = created["active_version"]
        assert version.version == 1
        assert version.is_active is True
        assert version.notes == "Initial version"

    def test_version_numbers_increase(self, db_session, ctx_a, workflow_config):
        """Test version numbers are strictly increasing"""
        service = AgentService(db_session)
        agent = service.create_agent("Intake", workflow_config, ctx_a)["agent"]

        numbers = [service.create_version(agent.id, workflow_config, ctx_a).version for _ in range(3)]

        assert numbers == [2, 3, 4]
        assert [v.version for v in service.list_versions(agent.id, ctx_a)] == [4, 3, 2, 1]

    def test_new_version_is_inactive(self, db_session, ctx_a, workflow_config):
        """Test creating a version does not change the active one"""
        service = AgentService(db_session)
        agent = service.create_agent("Intake", workflow_config, ctx_a)["agent"]

        v2 = service.create_version(agent.id, workflow_config, ctx_a, notes="Second")

        assert v2.is_active is False
        assert [v.version for v in _active_versions(db_session, agent.id)] == [1]

    def test_activate_v2_then_v1(self, db_session, ctx_a, workflow_config):
        """Test only the most recently activated version is active"""
        service = AgentService(db_session)
        created = service.create_agent("Intake", workflow_config, ctx_a)
        agent, v1 = created["agent"], created["active_version"]
        v2 = service.create_version(agent.id, workflow_config, ctx_a)

        service.activate_version(agent.id, v2.id, ctx_a)
        assert [v.id for v in _active_versions(db_session, agent.id)] == [v2.id]

        service.activate_version(agent.id, v1.id, ctx_a)
        assert [v.id for v in _active_versions(db_session, agent.id)] == [v1.id]

    def test_activate_version_of_other_agent_changes_nothing(self, db_session, ctx_a, workflow_config):
        """Test a version id from another agent is rejected"""
        service = AgentService(db_session)
        first = service.create_agent("First", workflow_config, ctx_a)
        second = service.create_agent("Second", workflow_config, ctx_a)

        result = service.activate_version(first["agent"].id, second["active_version"].id, ctx_a)

        assert result is None
        assert [v.id for v in _active_versions(db_session, first["agent"].id)] == [first["active_version"].id]
        assert [v.id for v in _active_versions(db_session, second["agent"].id)] == [second["active_version"].id]

    def test_activate_across_tenants_is_not_found(self, db_session, ctx_a, ctx_b, workflow_config):
        """Test another tenant cannot activate versions"""
        service = AgentService(db_session)
        agent = service.create_agent("Intake", workflow_config, ctx_a)["agent"]
        v2 = service.create_version(agent.id, workflow_config, ctx_a)

        assert service.activate_version(agent.id, v2.id, ctx_b) is None
        assert [v.version for v in _active_versions(db_session, agent.id)] == [1]

    def test_concurrent_activation_leaves_one_active(self, db_session, ctx_a, workflow_config):
        """Test parallel activations never leave zero or two active versions"""
        service = AgentService(db_session)
        agent = service.create_agent("Intake", workflow_config, ctx_a)["agent"]
        version_ids = [service.create_version(agent.id, workflow_config, ctx_a).id for _ in range(4)]

        factory = get_session_factory()
        errors = []

        def activate(version_id):
            session = factory()
            try:
                AgentService(session).activate_version(agent.id, version_id, ctx_a)
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=activate, args=(vid,)) for vid in version_ids * 2]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        active = _active_versions(db_session, agent.id)
        assert len(active) == 1
        assert active[0].id in version_ids

    def test_linked_rag_config_must_exist_in_tenant(self, db_session, ctx_a, ctx_b, workflow_config):
        """Test a version cannot link another tenant's RAG config"""
        rag = RagConfigService(db_session).create_config("KB", ctx_b)["config"]
        service = AgentService(db_session)
        agent = service.create_agent("Intake", workflow_config, ctx_a)["agent"]

        with pytest.raises(ValidationFailed):
            service.create_version(agent.id, workflow_config, ctx_a, rag_enabled=True, rag_config_id=rag.id)

    def test_soft_delete_releases_phone_numbers(self, db_session, ctx_a, workflow_config):
        """Test deleting an agent hides it and drops its mappings"""
        service = AgentService(db_session)
        agent = service.create_agent("Intake", workflow_config, ctx_a)["agent"]
        PhoneConfigService(db_session).create_phone_config("+15550000001", ctx_a, agent_id=agent.id)

        service.delete_agent(agent.id, ctx_a)

        assert service.get_agent(agent.id, ctx_a) is None
        assert len(PhoneConfigService(db_session).list_unmapped(ctx_a)) == 1


class TestTenantScoping:
    """Tests for tenant isolation in the config store"""

    def test_other_tenant_cannot_see_agent(self, db_session, ctx_a, ctx_b, workflow_config):
        """Test cross-tenant reads come back empty"""
        service = AgentService(db_session)
        agent = service.create_agent("Intake", workflow_config, ctx_a)["agent"]

        assert service.get_agent(agent.id, ctx_b) is None
        assert service.list_agents(ctx_b) == []

    def test_global_user_sees_all_tenants(self, db_session, ctx_a, ctx_b, global_ctx, workflow_config):
        """Test global users bypass the tenant filter"""
        service = AgentService(db_session)
        service.create_agent("A", workflow_config, ctx_a)
        service.create_agent("B", workflow_config, ctx_b)

        assert len(service.list_agents(global_ctx)) == 2

    def test_global_user_must_name_tenant_on_create(self, db_session, global_ctx, workflow_config):
        """Test global users need an explicit tenant for writes"""
        with pytest.raises(ValidationFailed):
            AgentService(db_session).create_agent("Intake", workflow_config, global_ctx)

    def test_global_user_creates_in_named_tenant(self, db_session, tenants, global_ctx, workflow_config):
        created = AgentService(db_session).create_agent(
            "Intake", workflow_config, global_ctx, tenant_id=tenants["b"].id
        )
        assert created["agent"].tenant_id == tenants["b"].id


class TestPhoneConfigs:
    """Tests for the phone pool and mappings"""

    def test_duplicate_number_in_tenant_conflicts(self, db_session, ctx_a):
        """Test the same number cannot be added twice to a tenant"""
        service = PhoneConfigService(db_session)
        service.create_phone_config("+15551234567", ctx_a)

        with pytest.raises(Conflict) as exc_info:
            service.create_phone_config("+15551234567", ctx_a)
        assert exc_info.value.message == "A phone config with this number already exists"

    def test_same_number_in_other_tenant_succeeds(self, db_session, ctx_a, ctx_b):
        """Test uniqueness is per tenant"""
        service = PhoneConfigService(db_session)
        service.create_phone_config("+15551234567", ctx_a)

        config = service.create_phone_config("+15551234567", ctx_b)
        assert config.tenant_id == ctx_b.tenant_id

    def test_number_reusable_after_soft_delete(self, db_session, ctx_a):
        service = PhoneConfigService(db_session)
        config = service.create_phone_config("+15551234567", ctx_a)
        service.delete_phone_config(config.id, ctx_a)

        assert service.create_phone_config("+15551234567", ctx_a).id != config.id

    def test_mapping_lifecycle(self, db_session, ctx_a, workflow_config):
        """Test create, conflict, re-route and removal of a mapping"""
        agents = AgentService(db_session)
        first = agents.create_agent("First", workflow_config, ctx_a)["agent"]
        second = agents.create_agent("Second", workflow_config, ctx_a)["agent"]
        service = PhoneConfigService(db_session)
        service.create_phone_config("+15551234567", ctx_a)

        mapping = service.create_mapping("+15551234567", first.id, ctx_a)
        assert mapping.agent_id == first.id

        with pytest.raises(Conflict):
            service.create_mapping("+15551234567", second.id, ctx_a)

        service.update_mapping("+15551234567", second.id, ctx_a)
        assert service.get_agent_for_phone_number("+15551234567", ctx_a).id == second.id

        service.update_mapping("+15551234567", None, ctx_a)
        assert service.get_agent_for_phone_number("+15551234567", ctx_a) is None
        assert service.update_mapping("+15551234567", first.id, ctx_a) is None

    def test_mapping_unknown_number_is_not_found(self, db_session, ctx_a, workflow_config):
        agent = AgentService(db_session).create_agent("Intake", workflow_config, ctx_a)["agent"]
        with pytest.raises(NotFound):
            PhoneConfigService(db_session).create_mapping("+15559999999", agent.id, ctx_a)

    def test_mapping_to_other_tenant_agent_is_not_found(self, db_session, ctx_a, ctx_b, workflow_config):
        """Test numbers cannot be routed to another tenant's agent"""
        agent = AgentService(db_session).create_agent("Intake", workflow_config, ctx_b)["agent"]
        service = PhoneConfigService(db_session)
        service.create_phone_config("+15551234567", ctx_a)

        with pytest.raises(NotFound):
            service.create_mapping("+15551234567", agent.id, ctx_a)

    def test_duplicate_insert_past_the_check_conflicts(self, db_session, ctx_a):
        """Test the unique index turns a racing duplicate into a conflict"""
        service = PhoneConfigService(db_session)
        service.create_phone_config("+17708304765", ctx_a)

        with patch.object(PhoneConfigService, "is_phone_number_exists", return_value=False):
            with pytest.raises(Conflict) as exc_info:
                service.create_phone_config("+17708304765", ctx_a)
        assert exc_info.value.message == "A phone config with this number already exists"

        db_session.expire_all()
        assert len(service.list_phone_configs(ctx_a)) == 1

    def test_renumber_onto_existing_number_past_the_check_conflicts(self, db_session, ctx_a):
        service = PhoneConfigService(db_session)
        service.create_phone_config("+17708304765", ctx_a)
        other = service.create_phone_config("+17708304766", ctx_a)

        with patch.object(PhoneConfigService, "is_phone_number_exists", return_value=False):
            with pytest.raises(Conflict):
                service.update_phone_config(other.id, ctx_a, phone_number="+17708304765")

        assert service.get_phone_config(other.id, ctx_a).phone_number == "+17708304766"

    def test_concurrent_create_leaves_one_active(self, db_session, ctx_a):
        """Test two parallel creates of one number yield a single active row"""
        factory = get_session_factory()
        barrier = threading.Barrier(2)
        created = []
        conflicts = []
        errors = []

        def create():
            session = factory()
            try:
                barrier.wait()
                created.append(PhoneConfigService(session).create_phone_config("+17708304765", ctx_a).id)
            except Conflict as e:
                conflicts.append(e)
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=create) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(created) == 1
        assert len(conflicts) == 1
        db_session.expire_all()
        assert [c.id for c in PhoneConfigService(db_session).list_phone_configs(ctx_a)] == created

    def test_global_mapping_targets_named_tenant(self, db_session, ctx_a, ctx_b, global_ctx, workflow_config):
        """Test a number owned by two tenants maps in the tenant the caller names"""
        agent_b = AgentService(db_session).create_agent("Intake", workflow_config, ctx_b)["agent"]
        service = PhoneConfigService(db_session)
        service.create_phone_config("+17708304765", ctx_a)
        config_b = service.create_phone_config("+17708304765", ctx_b)

        mapping = service.create_mapping("+17708304765", agent_b.id, global_ctx, tenant_id=ctx_b.tenant_id)

        assert mapping.phone_config_id == config_b.id
        assert mapping.tenant_id == ctx_b.tenant_id

        removed = service.delete_mapping("+17708304765", global_ctx, tenant_id=ctx_b.tenant_id)
        assert removed.id == config_b.id

    def test_global_mapping_requires_tenant(self, db_session, ctx_a, global_ctx, workflow_config):
        agent = AgentService(db_session).create_agent("Intake", workflow_config, ctx_a)["agent"]
        PhoneConfigService(db_session).create_phone_config("+17708304765", ctx_a)

        with pytest.raises(ValidationFailed) as exc_info:
            PhoneConfigService(db_session).create_mapping("+17708304765", agent.id, global_ctx)
        assert exc_info.value.details == [{"path": "tenantId", "message": "tenantId is required for global users"}]


class TestVersionedConfigs:
    """Tests for RAG and voice config versions"""

    def test_rag_defaults_on_first_version(self, db_session, ctx_a):
        created = RagConfigService(db_session).create_config("KB", ctx_a)
        version = created["active_version"]

        assert version.version == 1
        assert version.search_mode == "hybrid"
        assert version.top_k == 5
        assert version.vector_weight == "0.6"
        assert version.bedrock_model == "amazon.titan-embed-text-v2:0"

    def test_rag_version_inherits_unspecified_fields(self, db_session, ctx_a):
        """Test a new version copies fields from the latest version"""
        service = RagConfigService(db_session)
        config = service.create_config("KB", ctx_a, top_k=10, search_mode="vector")["config"]

        v2 = service.create_version(config.id, ctx_a, rrf_k=80)

        assert v2.version == 2
        assert v2.is_active is False
        assert v2.top_k == 10
        assert v2.search_mode == "vector"
        assert v2.rrf_k == 80

    def test_duplicate_rag_name_conflicts(self, db_session, ctx_a, ctx_b):
        service = RagConfigService(db_session)
        service.create_config("KB", ctx_a)

        with pytest.raises(Conflict) as exc_info:
            service.create_config("KB", ctx_a)
        assert exc_info.value.message == "A RAG config with this name already exists"
        assert service.create_config("KB", ctx_b)["config"].tenant_id == ctx_b.tenant_id

    def test_voice_version_inherits_and_activates(self, db_session, ctx_a):
        """Test voice versions inherit and activation keeps one active"""
        service = VoiceConfigService(db_session)
        created = service.create_config("Front desk", ctx_a, voice_id="voice-1", stability="0.3")
        config = created["config"]

        v2 = service.create_version(config.id, ctx_a, similarity_boost="0.9")
        assert v2.voice_id == "voice-1"
        assert v2.stability == "0.3"
        assert v2.pronunciation_dictionary_ids == []

        service.activate_version(config.id, v2.id, ctx_a)
        detail = service.get_config_detail(config.id, ctx_a)
        assert detail["active_version"].id == v2.id
        assert detail["version_count"] == 2

    def test_voice_configs_are_tenant_scoped(self, db_session, ctx_a, ctx_b):
        service = VoiceConfigService(db_session)
        config = service.create_config("Front desk", ctx_a, voice_id="voice-1")["config"]

        assert service.get_config(config.id, ctx_b) is None
        assert service.list_configs(ctx_b) == []
