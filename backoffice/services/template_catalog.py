from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from backoffice.errors import NotFoundError, ValidationError
from backoffice.models.entity import BillableEntity
from backoffice.models.template import (
    DEFAULT_TEMPLATES,
    FixedAmount,
    FromEntityBalance,
    InvoiceTemplate,
    ManualAmount,
)
from backoffice.storage.settings import Settings

log = logging.getLogger(__name__)


class InvoiceTemplateCatalog:
    """
    Table des modèles de facture, passée en configuration.
    L'ordre d'insertion est conservé (ordre d'affichage).
    """

    def __init__(self, templates: Iterable[InvoiceTemplate] = DEFAULT_TEMPLATES) -> None:
        self._templates: dict[str, InvoiceTemplate] = {}
        for t in templates:
            if t.kind in self._templates:
                raise ValueError(f"modèle en double: {t.kind}")
            self._templates[t.kind] = t

    @classmethod
    def from_settings(cls, settings: Settings) -> "InvoiceTemplateCatalog":
        if settings.invoice_templates:
            log.info("Catalogue de modèles chargé depuis settings.json (%d)", len(settings.invoice_templates))
            return cls(settings.invoice_templates)
        return cls()

    def list(self) -> List[InvoiceTemplate]:
        return list(self._templates.values())

    def get(self, kind: str) -> InvoiceTemplate:
        try:
            return self._templates[kind]
        except KeyError:
            raise NotFoundError("template", kind) from None

    @staticmethod
    def resolve_amount(template: InvoiceTemplate, entity: BillableEntity, manual_amount: Optional[int] = None) -> int:
        rule = template.amount_rule
        if isinstance(rule, FromEntityBalance):
            return entity.outstanding_balance
        if isinstance(rule, FixedAmount):
            return rule.amount
        if isinstance(rule, ManualAmount):
            if manual_amount is None:
                raise ValidationError("Montant requis pour une facture manuelle", field="manual_amount")
            if manual_amount < 0:
                raise ValidationError("Le montant doit être positif", field="manual_amount")
            if int(manual_amount) != manual_amount:
                raise ValidationError("Montant en FCFA entiers attendu", field="manual_amount")
            return int(manual_amount)
        raise ValidationError(f"règle de montant inconnue: {rule!r}")
