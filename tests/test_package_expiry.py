from __future__ import annotations

from datetime import date, timedelta

from conftest import add_client_package

from nailstudio.extensions import db
from nailstudio.models import ClientPackage
from nailstudio.packages import consumption_order, expire_overdue, is_eligible


def test_expire_overdue_only_touches_active_past_expiry(salon):
    today = date.today()
    overdue = add_client_package(salon.maria_id, salon.manicure_id, expiry_date=today - timedelta(days=1))
    due_today = add_client_package(salon.maria_id, salon.manicure_id, expiry_date=today)
    used = add_client_package(
        salon.maria_id, salon.manicure_id, expiry_date=today - timedelta(days=5), status="Utilizado"
    )

    assert expire_overdue(today) == 1
    db.session.commit()

    assert db.session.get(ClientPackage, overdue).status == "Expirado"
    assert db.session.get(ClientPackage, due_today).status == "Ativo"
    assert db.session.get(ClientPackage, used).status == "Utilizado"


def test_eligibility_and_ordering():
    today = date(2026, 5, 10)
    no_expiry = ClientPackage(status="Ativo", expiry_date=None, position=0)
    late = ClientPackage(status="Ativo", expiry_date=date(2026, 8, 1), position=1)
    early = ClientPackage(status="Ativo", expiry_date=date(2026, 6, 1), position=2)
    cancelled = ClientPackage(status="Cancelado", expiry_date=date(2026, 6, 1), position=3)

    assert is_eligible(no_expiry, today)
    assert not is_eligible(cancelled, today)
    assert consumption_order([no_expiry, late, early], "soonest_expiry") == [early, late, no_expiry]
    assert consumption_order([no_expiry, late, early], "purchase_order") == [no_expiry, late, early]
