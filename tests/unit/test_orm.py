"""Tests for the sform.orm.SalesforceORM facade."""

import pytest

from sform.config import SFConfig
from sform.exceptions import MissingCredentialsError, UnknownModel
from sform.models import ModelDescriptor
from sform.orm import SalesforceORM
from sform.record import RecordEntity
from sform.soap import SoapTransport


def test_add_model_accepts_dicts_and_descriptors(orm):
    assert orm.add_model(ModelDescriptor("Contact", ("LastName",))) is True
    assert orm.add_model({"name": "Account", "fields": ["Phone"]}) is False
    assert orm.get_model("Account").fields == ("Name", "Industry")
    assert orm.get_model("Contact").fields == ("LastName",)


def test_models_passed_to_constructor(fake_transport):
    orm = SalesforceORM(fake_transport, models=[{"name": "Lead", "fields": ["Email"]}])
    assert orm.get_model("Lead") is not None


def test_new_record(orm):
    rec = orm.new_record("Account", Name="Acme")

    assert isinstance(rec, RecordEntity)
    assert rec.Name == "Acme"
    assert rec.Id is None
    assert rec.session is orm.session


def test_new_record_unknown_model(orm):
    with pytest.raises(UnknownModel):
        orm.new_record("Opportunity")


def test_record_from_row_drops_metadata(orm):
    rec = orm.record_from_row(
        "Account", {"attributes": {"type": "Account"}, "Id": "001A", "Name": "Acme"}
    )
    assert rec.Id == "001A"
    assert rec.values == {"Name": "Acme"}


def test_escape_delegates_to_transport(orm):
    assert orm.escape("O'Brien") == "O\\'Brien"


@pytest.mark.asyncio
async def test_crud_lifecycle_shares_one_login(orm, fake_transport):
    rec = orm.new_record("Account", Name="Acme", Industry="Tech")

    await rec.create()
    fetched = await orm.get("Account", rec.Id)
    assert fetched.values == {"Name": "Acme", "Industry": "Tech"}

    fetched.Industry = "Retail"
    await fetched.update()
    (found,) = await orm.search("Account", f"Id = '{rec.Id}'")
    res = await orm.query("SELECT Id FROM Account")

    await fetched.delete()
    assert fetched.Id is None
    assert res.ok
    assert found.Name == "Acme"
    assert fake_transport.login_calls == 1


def test_from_config_builds_soap_stack():
    cfg = SFConfig(username="u", password="p", renewal_minutes=60)
    orm = SalesforceORM.from_config(cfg)

    assert isinstance(orm.transport, SoapTransport)
    assert orm.session.renewal_window == 3600
    assert orm.queries.registry is orm.registry


def test_from_config_without_credentials():
    with pytest.raises(MissingCredentialsError):
        SalesforceORM.from_config(SFConfig())
