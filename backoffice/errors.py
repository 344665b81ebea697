"""
Erreurs typées du back-office.

Chaque erreur porte un ``code`` stable (lisible par machine) en plus du
message, pour que l'appelant puisse brancher sur le type plutôt que sur le
texte.
"""
from __future__ import annotations

from typing import Any, Optional


class BackofficeError(Exception):
    code: str = "BACKOFFICE_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(BackofficeError):
    """Données d'entrée invalides (lignes, montants, dates, entité)."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[list[str]] = None, **details: Any) -> None:
        super().__init__(message, **details)
        self.errors = list(errors or [message])


class NotFoundError(BackofficeError):
    code = "NOT_FOUND"

    def __init__(self, what: str, key: Any) -> None:
        super().__init__(f"{what} introuvable: {key}", what=what, key=key)
        self.what = what
        self.key = key


class InvalidTransitionError(BackofficeError):
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str, reason: Optional[str] = None) -> None:
        msg = f"Transition interdite {current} -> {target}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg, current=current, target=target)
        self.current = current
        self.target = target


class ReconciliationWarning(UserWarning):
    """
    Avertissement non bloquant : la répartition du CA a été corrigée ou
    ne peut pas être considérée comme mesurée.
    """

    code = "RECONCILIATION_WARNING"

    def __init__(self, message: str, kind: str = "anomaly_corrected", **figures: Any) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.figures = figures

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReconciliationWarning):
            return NotImplemented
        return (self.message, self.kind, self.figures) == (other.message, other.kind, other.figures)

    def __hash__(self) -> int:
        return hash((self.message, self.kind))


class ExportFailed(BackofficeError):
    """Échec du rendu / de l'envoi externe. L'appelant peut réessayer."""

    code = "EXPORT_FAILED"
    retryable = True

    def __init__(self, cause: BaseException, invoice_number: Optional[str] = None) -> None:
        super().__init__(f"Export impossible ({invoice_number or '?'}): {cause}", invoice_number=invoice_number)
        self.cause = cause
        self.invoice_number = invoice_number


class ExportUnavailable(BackofficeError):
    """Aucun moteur de rendu n'est branché sur le service."""

    code = "EXPORT_UNAVAILABLE"
