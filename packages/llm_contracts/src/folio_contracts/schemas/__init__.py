"""JSON Schemas shipped as package data; load with `folio_contracts.validate.load_schema`."""
