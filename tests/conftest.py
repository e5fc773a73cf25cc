"""Shared deal fixtures."""

import pytest

from factories import make_deal, make_payment


@pytest.fixture
def two_deals():
    """Closed deal A and a 50% proposal B, both paying in January 2025."""
    return [
        make_deal("Acme", stage="FECHADO", probability=100, deal_type="SAAS", id=1,
                  payments=[make_payment(1000, "2025-01-15", id=11)]),
        make_deal("Globex", stage="PROPOSTA", probability=50, deal_type="PD", id=2,
                  payments=[make_payment(2000, "2025-01-20", id=21)]),
    ]


@pytest.fixture
def year_of_deals():
    """Payments spread from Dec 2024 to Jul 2025 across four stages."""
    return [
        make_deal("Acme", stage="FECHADO", probability=90, deal_type="SAAS", id=1, payments=[
            make_payment(500, "2024-12-10", po=1),
            make_payment(1000, "2025-01-15", po=1),
            make_payment(1000, "2025-07-15"),
        ]),
        make_deal("Globex", stage="PROPOSTA", probability=40, deal_type="CONSULTORIA", id=2, payments=[
            make_payment(2000, "2025-03-01"),
            make_payment(3000, "2025-06-30T10:00:00Z", po=2),
        ]),
        make_deal("Initech", stage="CONVERSA", probability=10, id=3, payments=[
            make_payment(700, "2025-03-31"),
        ]),
        make_deal("Umbrella", stage="PROSPECCAO", probability=0, deal_type="SAAS", id=4),
    ]
