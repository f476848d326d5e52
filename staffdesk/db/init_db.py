from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from staffdesk.db.base import Base
from staffdesk.db.session import SessionLocal, engine
from staffdesk.models.staff import Department, StaffUser


def init_db() -> None:
    """
    Create tables + seed demo staff.

    Small and deterministic so the authorization endpoints can be tried
    without additional setup (``Authorization: Bearer <staff id>``).
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        _seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Department.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    # Departments
    ops = Department(name="운영", code="ops", description="Management office")
    front = Department(name="리셉션", code="front", description="Front desk")
    gym = Department(name="피트니스", code="gym", description="Fitness floor")
    court = Department(name="테니스", code="court", description="Tennis courts")
    range_ = Department(name="골프", code="range", description="Golf range")
    db.add_all([ops, front, gym, court, range_])
    db.flush()

    # Staff
    staff = [
        StaffUser(username="kim_admin", email="kim.admin@example.com", role="admin", position="임원", department_id=ops.id),
        StaffUser(
            username="lee_front",
            email="lee.front@example.com",
            role="reception",
            position="리셉션 매니저",
            department_id=front.id,
        ),
        StaffUser(username="park_front", email="park.front@example.com", role="reception", position="리셉션 직원", department_id=front.id),
        StaffUser(username="choi_lead", email="choi.lead@example.com", role="fitness", position="팀장", department_id=gym.id),
        StaffUser(
            username="jung_trainer",
            email="jung.trainer@example.com",
            role="fitness",
            position="트레이너",
            department_id=gym.id,
            # Helps out on the sales desk.
            individual_permissions=["sales.view_all"],
        ),
        StaffUser(username="kang_coach", email="kang.coach@example.com", role="tennis", position="테니스 코치", department_id=court.id),
        StaffUser(username="yoon_pro", email="yoon.pro@example.com", role="golf", position="골프 프로", department_id=range_.id),
        StaffUser(
            username="han_former",
            email="han.former@example.com",
            role="fitness",
            position="트레이너",
            department_id=gym.id,
            is_active=False,
        ),
    ]
    db.add_all(staff)
    db.commit()
