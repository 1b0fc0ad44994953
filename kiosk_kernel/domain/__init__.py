"""
Pure domain layer.

Value objects, fee policy, balance arithmetic, result types and DTOs with
NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Everything here is immutable and deterministic; time enters only through
an injected ``Clock``.
"""
