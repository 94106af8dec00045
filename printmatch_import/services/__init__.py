"""Import pipeline services (resolve, match, import) and the
reconciliation helpers."""
