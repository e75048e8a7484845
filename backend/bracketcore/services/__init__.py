"""
Services Layer

Bracket engine and runtime services that:
- Accept domain inputs (IDs, sessions, snapshots)
- Return domain outputs (snapshots, plans, tagged validation results)
- Do NOT depend on HTTP request/response objects
- Do NOT mutate data unless explicitly designed to
"""
