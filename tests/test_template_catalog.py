import pytest

from backoffice.errors import NotFoundError, ValidationError
from backoffice.models.entity import BillableEntity
from backoffice.models.template import FixedAmount, InvoiceTemplate, ManualAmount
from backoffice.services.template_catalog import InvoiceTemplateCatalog
from backoffice.storage.settings import Settings


@pytest.fixture
def partner_entity():
    return BillableEntity(id="p1", kind="partner", display_name="KmerTech", outstanding_balance=150000)


def test_default_order_and_policies(catalog):
    kinds = [t.kind for t in catalog.list()]
    assert kinds == ["partner_debt", "commercial_commission", "partner_subscription", "manual"]

    policy = {t.kind: (t.initial_status, t.tax_rate) for t in catalog.list()}
    assert policy == {
        "partner_debt": ("pending", 0.0),
        "commercial_commission": ("pending", 0.0),
        "partner_subscription": ("pending", 0.0),
        "manual": ("draft", 0.19),
    }


def test_get_unknown(catalog):
    with pytest.raises(NotFoundError):
        catalog.get("refund")


def test_from_entity_balance(catalog, partner_entity):
    assert catalog.resolve_amount(catalog.get("partner_debt"), partner_entity) == 150000


def test_fixed_amount_ignores_balance(catalog, partner_entity):
    assert catalog.resolve_amount(catalog.get("partner_subscription"), partner_entity, 999) == 15000


@pytest.mark.parametrize("amount", [None, -1])
def test_manual_amount_required_and_positive(catalog, amount):
    customer = BillableEntity(id="cu1", kind="customer", display_name="Client")
    with pytest.raises(ValidationError):
        catalog.resolve_amount(catalog.get("manual"), customer, amount)


def test_manual_amount(catalog):
    customer = BillableEntity(id="cu1", kind="customer", display_name="Client")
    assert catalog.resolve_amount(catalog.get("manual"), customer, 0) == 0
    assert catalog.resolve_amount(catalog.get("manual"), customer, 25000) == 25000


def test_injected_catalog():
    t = InvoiceTemplate(kind="training", label="Formation", target_entity_kind="customer",
                        default_description="Atelier CV", amount_rule=FixedAmount(amount=5000))
    cat = InvoiceTemplateCatalog([t])
    assert [x.kind for x in cat.list()] == ["training"]


def test_duplicate_kind_rejected():
    t = InvoiceTemplate(kind="x", label="X", target_entity_kind="customer",
                        default_description="x", amount_rule=ManualAmount())
    with pytest.raises(ValueError):
        InvoiceTemplateCatalog([t, t])


def test_from_settings_override():
    settings = Settings.model_validate({
        "invoice_templates": [{
            "kind": "manual", "label": "Manuelle", "target_entity_kind": "customer",
            "default_description": "Prestation", "amount_rule": {"rule": "manual"},
            "tax_rate": 0.1925, "initial_status": "draft",
        }]
    })
    cat = InvoiceTemplateCatalog.from_settings(settings)
    assert [t.kind for t in cat.list()] == ["manual"]
    assert cat.get("manual").tax_rate == 0.1925


def test_from_settings_defaults():
    assert len(InvoiceTemplateCatalog.from_settings(Settings()).list()) == 4
