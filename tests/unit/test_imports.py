"""
Import validation tests.

These tests ensure all modules can be imported successfully, catching
issues like missing dependencies or circular imports early.

Run with: pytest tests/unit/test_imports.py -v
"""

import importlib

import pytest


class TestServiceImports:
    """Verify all service modules can be imported."""

    @pytest.mark.parametrize("module_name", [
        "crm_engine.services.behavior_service",
        "crm_engine.services.engagement_service",
        "crm_engine.services.consent",
        "crm_engine.services.crm_metrics_service",
        "crm_engine.services.profile_service",
        "crm_engine.services.nba_rules",
        "crm_engine.services.nba_service",
        "crm_engine.services.lead_scoring_service",
        "crm_engine.services.journey_service",
        "crm_engine.services.dispatch_service",
        "crm_engine.services.compliance_service",
        "crm_engine.services.customer360_service",
    ])
    def test_service_import(self, module_name: str):
        """Each service module should import without errors."""
        try:
            importlib.import_module(module_name)
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestModelImports:
    """Verify all model modules can be imported."""

    @pytest.mark.parametrize("module_name", [
        "crm_engine.models.action",
        "crm_engine.models.analytics",
        "crm_engine.models.audit",
        "crm_engine.models.compliance",
        "crm_engine.models.customer",
        "crm_engine.models.dashboard",
        "crm_engine.models.journey",
        "crm_engine.models.lead",
        "crm_engine.models.metrics",
    ])
    def test_model_import(self, module_name: str):
        """Each model module should import without errors."""
        try:
            importlib.import_module(module_name)
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestUtilImports:
    """Verify utility and repository modules can be imported."""

    @pytest.mark.parametrize("module_name", [
        "crm_engine.config",
        "crm_engine.utils.cache_service",
        "crm_engine.utils.error_handling",
        "crm_engine.utils.estimator",
        "crm_engine.utils.logging_config",
        "crm_engine.utils.validators",
        "crm_engine.repositories.audit_repo",
    ])
    def test_util_import(self, module_name: str):
        """Each utility module should import without errors."""
        try:
            importlib.import_module(module_name)
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestThirdPartyImports:
    """Verify third-party dependencies are available."""

    @pytest.mark.parametrize("package", [
        "pydantic",
        "pythonjsonlogger",
    ])
    def test_third_party_import(self, package: str):
        """Each declared dependency should be importable."""
        try:
            importlib.import_module(package)
        except ImportError as e:
            pytest.fail(f"Missing dependency {package}: {e}")

    def test_public_models_reexported(self):
        """The models package should re-export the public types."""
        from crm_engine import models

        for name in (
            "Customer",
            "NextBestAction",
            "CRMMetricsProfile",
            "ScoredLead",
            "DashboardSummary",
            "TransferAnalytics",
        ):
            assert hasattr(models, name)
