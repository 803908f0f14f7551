"""
Access Service package for the Concert Access Layer.

This package decides whether a request context may query, create, update
or delete a record of the membership and events backend, entity by entity
and field by field. It provides:

- app.main: AccessService wiring and the create_service factory.
- app.schema: Entity and field model plus write-time constraint checks.
- app.rules: Predicate tree, policy model and evaluation engine.
- app.context: Request context shape and claim resolution.
- app.gate: Reference gate enforcing access before validation.
- app.definitions: Definition documents and the built-in catalog.

Guidelines:
- Tables are built once at startup and never mutated.
- Evaluation never performs I/O; context lookups happen before it.
- A reference to an unknown attribute is a configuration error, never a deny.
"""
