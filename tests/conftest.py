from datetime import date, datetime, timezone

import pytest

from backoffice.models.common import FixedClock
from backoffice.models.entity import Associate, Customer, Partner
from backoffice.services.entity_resolver import BillableEntityResolver
from backoffice.services.invoice_builder import InvoiceBuilder
from backoffice.services.invoice_service import InvoiceService
from backoffice.services.template_catalog import InvoiceTemplateCatalog
from backoffice.storage.entity_source import MemoryEntitySource
from backoffice.storage.sequence import InvoiceNumberSequence

ISSUE = date(2024, 6, 15)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 6, 15, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def entities():
    return MemoryEntitySource([
        Partner(id="p1", name="KmerTech Recruit", company="KmerTech SAS",
                email="contact@kmertech.cm", phone="+237691234567", debt=150000, country="Cameroun"),
        Partner(id="p2", name="TechRecruit Solutions", company="TechRecruit Ltd",
                email="info@techrecruit.cm", debt=0),
        Associate(id="c1", first_name="Emmanuel", last_name="De Song", email="emmanuel@email.com",
                  commission_due=55000, available_balance=55000),
        Associate(id="c2", first_name="Sophie", last_name="Martin", available_balance=35000),
        Customer(id="cu1", name="Armand Onana", email="a.onana@studya.cm", phone="+237677123456"),
    ])


@pytest.fixture
def resolver(entities):
    return BillableEntityResolver(entities)


@pytest.fixture
def catalog():
    return InvoiceTemplateCatalog()


@pytest.fixture
def numbering(tmp_path):
    return InvoiceNumberSequence(tmp_path / "invoice_sequence.json")


@pytest.fixture
def builder(catalog, numbering, clock):
    return InvoiceBuilder(catalog, numbering, clock=clock)


@pytest.fixture
def make_invoice(builder, catalog, resolver):
    """Construit une facture à partir d'un modèle et d'une entité connue."""

    def _make(template_kind="partner_subscription", entity_id="p1", **kwargs):
        template = catalog.get(template_kind)
        entity = resolver.resolve(template.target_entity_kind, entity_id)
        kwargs.setdefault("issue_date", ISSUE)
        return builder.build(template, entity, **kwargs)

    return _make


@pytest.fixture
def service(tmp_path, entities, clock):
    return InvoiceService(tmp_path / "data", entities=entities, clock=clock)
