"""Service layer — stage components and the lifecycle orchestrator.

INVARIANT: Commands consume ServiceResult; services raise StageError.
"""
