"""
Module: deadline_kernel.db.types
Responsibility: Annotated type aliases for column types shared by the models,
    so every table stores identities, enums and text with identical widths.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/
    or outer layers.
"""

from typing import Annotated

from sqlalchemy import String

# Deterministic task identity: {rule_id}_{client_id}_{period_key}
TaskId = Annotated[str, String(200)]

# Client identifiers are owned by the CRUD layer
ClientId = Annotated[str, String(100)]

# Rule identifiers and enum values
ShortCode = Annotated[str, String(100)]

# Titles and law references
Title = Annotated[str, String(500)]

# Long text for descriptions
LongText = Annotated[str, String(4000)]
