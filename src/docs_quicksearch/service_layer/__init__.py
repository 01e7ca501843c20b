"""Service layer: orchestration on top of the search stack."""
