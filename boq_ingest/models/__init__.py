"""Domain models for the BOQ ingestion toolkit.

This package contains the value objects passed between the parser, the
reconciliation services and the CLI.
"""

from .boq import Headline, LineItem, ParsedSheet, ParseErrorKind, ParseResult
from .error_record import ErrorRecord
from .invoice import InvoiceCandidate, InvoiceLineCandidate
from .import_result import BoqLoadReport, DocumentReport, GrnImportReport, MasterImportReport

__all__ = [
    # BOQ tree
    "LineItem",
    "Headline",
    "ParsedSheet",
    "ParseErrorKind",
    "ParseResult",
    # GRN candidates
    "InvoiceCandidate",
    "InvoiceLineCandidate",
    # Reports
    "BoqLoadReport",
    "MasterImportReport",
    "GrnImportReport",
    "DocumentReport",
    "ErrorRecord",
]
