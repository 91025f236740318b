"""Well-known actor identities."""

from uuid import UUID

# Actor recorded for writes no user initiated, such as anonymous POS sales.
SYSTEM_ACTOR_ID = UUID(int=0)
