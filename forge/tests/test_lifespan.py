"""Tests for lifespan management."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from forge import state


class TestLifespanResources:
    def test_lifespan_resources_defaults(self):
        from forge.lifespan import LifespanResources

        resources = LifespanResources()
        assert resources.redis_client is None
        assert resources.event_bus is None
        assert resources.coordinator is None
        assert resources.admission is None


class TestInitSandbox:
    def test_init_sandbox_sweeps_stale_workspaces(self, sandbox_env, workspace_root):
        from forge.lifespan import init_sandbox

        (workspace_root / "forge-leftover").mkdir()
        (workspace_root / "unrelated").mkdir()

        coordinator, admission = init_sandbox()

        assert not (workspace_root / "forge-leftover").exists()
        assert (workspace_root / "unrelated").exists()
        assert coordinator.workspaces.root == workspace_root
        assert coordinator.runner.timeout == 10
        assert admission.max_concurrent == 8


class TestSetupAndCleanup:
    @pytest.mark.asyncio
    async def test_setup_populates_state_and_cleanup_clears_it(self, sandbox_env):
        from forge.lifespan import cleanup_resources, setup_resources

        mock_client = MagicMock()
        mock_client.aclose = AsyncMock()
        with patch("forge.lifespan.init_redis", return_value=mock_client):
            resources = await setup_resources()

        assert state.redis_client is mock_client
        assert state.event_bus is resources.event_bus
        assert state.coordinator is resources.coordinator
        assert state.admission is resources.admission

        await cleanup_resources(resources)
        mock_client.aclose.assert_awaited_once()
        assert state.redis_client is None
        assert state.coordinator is None
        assert state.admission is None

    @pytest.mark.asyncio
    async def test_cleanup_survives_redis_close_error(self, sandbox_env):
        from forge.lifespan import LifespanResources, cleanup_resources

        mock_client = MagicMock()
        mock_client.aclose = AsyncMock(side_effect=ConnectionError("gone"))
        await cleanup_resources(LifespanResources(redis_client=mock_client))
        assert state.redis_client is None
