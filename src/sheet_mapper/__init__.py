"""sheet-mapper — Turn spreadsheet rows into dynamic and typed records."""

__version__ = "0.1.0"

XLS_CONTENT_TYPE = "application/vnd.ms-excel"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ACCEPTED_CONTENT_TYPES: list[str] = [XLS_CONTENT_TYPE, XLSX_CONTENT_TYPE]
