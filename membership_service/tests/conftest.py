from __future__ import annotations

import pytest

from membership_service.tests.fakes import MembershipFixture, build_membership_fixture


@pytest.fixture
def membership() -> MembershipFixture:
    return build_membership_fixture()
