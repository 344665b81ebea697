from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from backoffice.models.template import InvoiceTemplate

log = logging.getLogger(__name__)

# --- Chemins de base ---
ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_DATA_DIR = ROOT_DIR / "data"
DATA_DIR_ENV = "BACKOFFICE_DATA_DIR"


def data_dir(override: Optional[os.PathLike | str] = None) -> Path:
    """Répertoire de données : argument, puis $BACKOFFICE_DATA_DIR, puis ./data."""
    if override:
        return Path(override)
    env = os.environ.get(DATA_DIR_ENV)
    if env:
        return Path(env.strip().strip('"').strip("'"))
    return DEFAULT_DATA_DIR


# ---------- Utils JSON ----------
def load_json(path: os.PathLike | str) -> Any:
    p = Path(path)
    if not p.exists():
        return None
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        log.warning("JSON illisible %s (%s), valeurs par défaut utilisées", p, e)
        return None


# ---------- Modèle ----------
class CompanyInfo(BaseModel):
    name: str = "Studya"
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = "Yaoundé"
    country: str = "Cameroun"


class NumberingSettings(BaseModel):
    invoice_prefix: str = "INV-"


class InvoicingSettings(BaseModel):
    default_due_days: int = Field(default=30, ge=0)


class BackupSettings(BaseModel):
    enabled: bool = True
    keep: int = Field(default=5, ge=0)


class Settings(BaseModel):
    currency: str = "XAF"
    numbering: NumberingSettings = Field(default_factory=NumberingSettings)
    invoicing: InvoicingSettings = Field(default_factory=InvoicingSettings)
    company: CompanyInfo = Field(default_factory=CompanyInfo)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    # None => catalogue par défaut
    invoice_templates: Optional[List[InvoiceTemplate]] = None

    model_config = {"extra": "ignore"}  # tolère d'anciennes clés dans le JSON


def load_settings(base: Optional[os.PathLike | str] = None) -> Settings:
    raw = load_json(data_dir(base) / "settings.json") or {}
    if not isinstance(raw, dict):
        log.warning("settings.json n'est pas un objet, valeurs par défaut utilisées")
        return Settings()
    try:
        return Settings.model_validate(raw)
    except PydanticValidationError as e:
        # une config invalide ne doit pas passer inaperçue
        raise ValueError(f"settings.json invalide: {e}") from e
