"""
Tests for per-model __userstamps__ overrides.
"""
import pytest

from userstamps import ConfigurationError, as_user, configure, model_setting, soft_delete
from userstamps.config import effective_config, get_config, model_overrides
from stamped_models import Invoice, Post


@pytest.fixture
def invoice(db, users):
    with as_user(7):
        invoice = Invoice(number="INV-001")
        db.add(invoice)
        db.commit()
    return invoice


def test_custom_columns_are_stamped(db, invoice):
    assert invoice.created_by_id == 7

    with as_user(42):
        invoice.number = "INV-001-A"
        db.commit()

    db.refresh(invoice)
    assert invoice.modified_by_id == 42


def test_model_soft_delete_column_wins_over_global(db, invoice):
    configure(soft_delete_column="deleted_at")

    with as_user(42):
        soft_delete(invoice)
        db.commit()

    db.refresh(invoice)
    assert invoice.voided_at is not None
    assert invoice.removed_by_id == 42
    assert invoice.modified_by_id is None


def test_deleter_relationship_on_soft_deleting_model(db, users, invoice):
    alice, _ = users

    with as_user(alice):
        soft_delete(invoice)
        db.commit()

    assert invoice.deleter is alice
    assert invoice.creator.name == "Bob"


def test_model_setting_prefers_override():
    assert model_setting(Invoice, "creator_column") == "created_by_id"
    assert model_setting(Post, "creator_column") == "creator_id"
    assert Invoice.userstamps_setting("soft_delete_column") == "voided_at"


def test_model_setting_reverse_associations_falls_back_to_global():
    assert model_setting(Post, "reverse_associations") is True

    configure(auto_setup_reverse_associations=False)

    assert model_setting(Post, "reverse_associations") is False


def test_model_setting_unknown_key():
    with pytest.raises(ConfigurationError):
        model_setting(Post, "colour")


def test_mixin_setting_matches_model_setting():
    configure(auto_setup_reverse_associations=False)

    assert Post.userstamps_setting("reverse_associations") is False
    assert Invoice.userstamps_setting("creator_column") == model_setting(Invoice, "creator_column")
    with pytest.raises(ConfigurationError):
        Post.userstamps_setting("colour")


def test_unknown_override_keys_rejected():
    class Legacy:
        __userstamps__ = {"creator_colum": "author_id"}

    with pytest.raises(ConfigurationError) as exc:
        model_overrides(Legacy)

    assert "creator_colum" in str(exc.value)


def test_override_disabling_creator_and_updater_rejected():
    class Readonly:
        __userstamps__ = {"creator_column": None, "updater_column": None}

    with pytest.raises(ConfigurationError) as exc:
        effective_config(Readonly)

    assert "Readonly" in str(exc.value)


def test_effective_config_without_overrides_is_global():
    assert effective_config(Post) is get_config()


def test_effective_config_ignores_model_only_settings():
    class Quiet:
        __userstamps__ = {"reverse_associations": False}

    assert effective_config(Quiet) is get_config()
