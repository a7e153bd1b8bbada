"""ORM Models — SQLAlchemy declarative models for identities, tokens and interviews.

Invariants:
    - All models inherit from Base (db/base.py)
    - users is the root; interviews and refresh_tokens reference users.id

Design Decisions:
    - All models imported here so string-based relationship() references resolve
      before any query runs
"""

from casecoach.models.user import User  # noqa: F401
from casecoach.models.interview import Interview  # noqa: F401
from casecoach.models.refresh_token import RefreshToken  # noqa: F401
