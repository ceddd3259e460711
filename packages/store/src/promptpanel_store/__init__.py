"""Audit trail storage: integrity-hashed JSONL records and the weight-change log."""
