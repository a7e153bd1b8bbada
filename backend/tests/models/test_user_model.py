"""User ORM — verifies the mapper configuration.

Tests:
    - The interviews relationship never loads implicitly and mappers configure
      without SQLAlchemy deprecation warnings
"""

import warnings

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import configure_mappers

from casecoach.models.user import User


def test_interviews_relationship_never_loads_implicitly():
    assert User.interviews.property.lazy == "raise"
    assert User.interviews.property.passive_deletes is True


def test_mappers_configure_without_deprecation_warnings():
    with warnings.catch_warnings():
        warnings.simplefilter("error", sa_exc.SADeprecationWarning)
        configure_mappers()
