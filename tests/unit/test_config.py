"""
Tests for the runtime tracking configuration
"""

import pytest
from core.config import ConfigurationStore, Settings, TrackingConfiguration
from core.exceptions import ValidationError
from models.base import Category


def test_defaults():
    configuration = TrackingConfiguration()

    assert configuration.enabled is True
    assert configuration.retention_days == 365
    assert configuration.default_category == Category.JOBS
    assert configuration.mirror_to_external_logger is True


def test_store_builds_from_settings_lazily():
    source = Settings(
        FLOW_TRACKER_ENABLED=False,
        FLOW_TRACKER_RETENTION_DAYS=30,
        FLOW_TRACKER_DEFAULT_CATEGORY="services"
    )
    store = ConfigurationStore(source)

    configuration = store.get()

    assert configuration.enabled is False
    assert configuration.retention_days == 30
    assert configuration.default_category == Category.SERVICES
    assert store.get() is configuration


def test_store_without_source_uses_defaults():
    assert ConfigurationStore().get() == TrackingConfiguration()


def test_configure_with_options_and_block():
    store = ConfigurationStore()

    store.configure(retention_days=7, default_category="api")
    store.configure(lambda c: setattr(c, "mirror_to_external_logger", False))

    configuration = store.get()
    assert configuration.retention_days == 7
    assert configuration.default_category == Category.API
    assert configuration.mirror_to_external_logger is False


def test_configure_rejects_unknown_option():
    store = ConfigurationStore()

    with pytest.raises(ValidationError) as exc_info:
        store.configure(retention=10)

    assert exc_info.value.context["option"] == "retention"


@pytest.mark.parametrize("options", [
    {"retention_days": -1},
    {"default_category": "cron"},
])
def test_configure_rejects_invalid_values(options):
    store = ConfigurationStore()

    with pytest.raises(ValidationError):
        store.configure(**options)


def test_replace_and_reset():
    store = ConfigurationStore()
    replacement = TrackingConfiguration(enabled=False)

    assert store.replace(replacement) is replacement
    assert store.get().enabled is False

    store.reset()
    assert store.get().enabled is True


@pytest.mark.parametrize("options", [
    {"retention_days": 5, "default_category": "cron"},
    {"enabled": False, "retention": 10},
])
def test_failed_configure_leaves_configuration_untouched(options):
    store = ConfigurationStore()
    before = store.get()

    with pytest.raises(ValidationError):
        store.configure(**options)

    assert store.get() is before
    assert store.get() == TrackingConfiguration()


def test_failed_block_leaves_configuration_untouched():
    store = ConfigurationStore()

    def block(configuration):
        configuration.enabled = False
        configuration.retention_days = -1

    with pytest.raises(ValidationError):
        store.configure(block)

    assert store.get().enabled is True
    assert store.get().retention_days == 365
