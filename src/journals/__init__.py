"""Synchronized in-memory journal of GitHub issues and comments.

This package mirrors the open issues (and their comments) of a GitHub
repository that reference managed resources, and re-exposes every change
as an ADDED / MODIFIED / DELETED notification:

- Webhook signature verification and dispatch
- Translation of GitHub wire payloads into journal records
- The journal cache with its subscriber registry
- Reconciliation of the cache against the GitHub search API
- Prometheus metrics and the FastAPI service wiring
"""
