"""Centralized error taxonomy for credit assessment."""

from typing import List, Optional, Dict, Any


class CreditKitError(Exception):
    """Base class for all CreditKit errors."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            'error_type': self.__class__.__name__,
            'message': str(self)
        }


class CreditNotFoundError(CreditKitError):
    """Raised when a credit identifier is not registered in the catalog."""

    def __init__(self, credit_id: str, available: Optional[List[str]] = None):
        self.credit_id = credit_id
        self.available = available or []

        msg = f"Credit {credit_id} not found in rule catalog"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({'credit_id': self.credit_id, 'available': self.available})
        return data


class DocumentNotFoundError(CreditKitError):
    """Raised when a referenced source document is not part of the document set."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Document '{label}' not found in document set")


class InvalidInputError(CreditKitError):
    """
    Raised when a value is non-numeric or outside the domain a calculation needs.

    Inside the rule evaluator this error is folded into the non-compliance
    list of the assessment result; it never aborts an evaluation.
    """
    pass


class StructuralError(CreditKitError):
    """
    Raised when a document set, document or catalog entry is malformed.

    Carries one entry per structural issue so callers can report all of them
    at once.
    """

    def __init__(self, message: str, issues: Optional[List[Dict[str, Any]]] = None):
        self.issues = issues or []
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['issues'] = self.issues
        return data
