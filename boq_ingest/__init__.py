"""BOQ workbook parsing and spreadsheet import tooling for the BOQ dashboard database."""

__version__ = "0.1.0"
