import uuid
from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.security import create_access_token
from app.core.models import FeeAuditLog, FeeInstallment, Student, StudentFeeLedger

STUDENTS_URL = "/api/v1/students"


def _other_student(payload: dict, **changes) -> dict:
    other = dict(payload)
    other.update(
        full_name="Anita Sharma",
        email="anita.sharma@example.com",
        aadhar_number="567856785678",
    )
    other.update(changes)
    return other


@pytest.mark.asyncio
async def test_register_student(client: AsyncClient, db_session: AsyncSession, student_payload: dict, staff_id) -> None:
    response = await client.post(STUDENTS_URL, json=student_payload)
    assert response.status_code == 201
    data = response.json()

    assert data["roll_no"] == f"{date.today().year}001"
    assert data["certification_title"] == "DIPLOMA IN COMPUTER APPLICATION"
    assert [s["code"] for s in data["subjects"]] == ["CS-01", "CS-02", "CS-03", "CS-04", "CS-05"]
    student_id = uuid.UUID(data["id"])

    # Ledger opened with an even split over the joining date
    ledger = (
        await db_session.execute(select(StudentFeeLedger).where(StudentFeeLedger.student_id == student_id))
    ).scalar_one()
    assert ledger.total_fees == Decimal("10000")
    assert ledger.remaining_fees == Decimal("10000")
    assert ledger.installment_count == 3
    assert ledger.payment_status == "NotPaid"

    installments = (
        await db_session.execute(
            select(FeeInstallment).where(FeeInstallment.ledger_id == ledger.id).order_by(FeeInstallment.position)
        )
    ).scalars().all()
    assert [i.amount for i in installments] == [Decimal("3334"), Decimal("3333"), Decimal("3333")]
    assert [i.due_date for i in installments] == [date(2026, 1, 15), date(2026, 2, 15), date(2026, 3, 15)]

    audit = (
        await db_session.execute(select(FeeAuditLog).where(FeeAuditLog.student_id == student_id))
    ).scalars().all()
    assert [a.action_type for a in audit] == ["CREATE_LEDGER"]
    assert audit[0].actor_id == staff_id


@pytest.mark.asyncio
async def test_roll_numbers_are_sequential(client: AsyncClient, student_payload: dict) -> None:
    first = await client.post(STUDENTS_URL, json=student_payload)
    second = await client.post(STUDENTS_URL, json=_other_student(student_payload))
    assert first.status_code == 201
    assert second.status_code == 201

    year = date.today().year
    assert first.json()["roll_no"] == f"{year}001"
    assert second.json()["roll_no"] == f"{year}002"


@pytest.mark.asyncio
async def test_register_default_installment_count(client: AsyncClient, db_session: AsyncSession, student_payload: dict) -> None:
    student_payload.pop("installment_count")
    response = await client.post(STUDENTS_URL, json=student_payload)
    assert response.status_code == 201

    ledger = (
        await db_session.execute(
            select(StudentFeeLedger).where(StudentFeeLedger.student_id == uuid.UUID(response.json()["id"]))
        )
    ).scalar_one()
    assert ledger.installment_count == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "changes",
    [
        {"full_name": "Someone Else", "aadhar_number": "999999999999"},  # same email
        {"full_name": "Someone Else", "email": "someone@example.com"},  # same aadhar
    ],
)
async def test_register_duplicate_rejected(client: AsyncClient, student_payload: dict, changes: dict) -> None:
    assert (await client.post(STUDENTS_URL, json=student_payload)).status_code == 201

    duplicate = dict(student_payload, **changes)
    response = await client.post(STUDENTS_URL, json=duplicate)
    assert response.status_code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "changes",
    [
        {"phone_number": "12345"},
        {"aadhar_number": "1234"},
        {"total_fees": "-1"},
        {"installment_count": 13},
        {"installment_count": 0},
        {"selected_course": "Knitting"},
        {"email": "not-an-email"},
    ],
)
async def test_register_invalid_payload(client: AsyncClient, student_payload: dict, changes: dict) -> None:
    response = await client.post(STUDENTS_URL, json=dict(student_payload, **changes))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_search_priority(client: AsyncClient, student_payload: dict) -> None:
    ravi = (await client.post(STUDENTS_URL, json=student_payload)).json()
    anita = (
        await client.post(STUDENTS_URL, json=_other_student(student_payload, phone_number="9123456780"))
    ).json()

    # Roll number wins over phone and email
    response = await client.get(
        f"{STUDENTS_URL}/search",
        params={"roll_no": anita["roll_no"], "phone_number": ravi["phone_number"], "email": ravi["email"]},
    )
    assert response.status_code == 200
    assert response.json()["id"] == anita["id"]

    # Phone wins over email
    response = await client.get(
        f"{STUDENTS_URL}/search",
        params={"phone_number": ravi["phone_number"], "email": anita["email"]},
    )
    assert response.json()["id"] == ravi["id"]

    response = await client.get(f"{STUDENTS_URL}/search", params={"email": "ANITA.SHARMA@example.com"})
    assert response.status_code == 200
    assert response.json()["id"] == anita["id"]


@pytest.mark.asyncio
async def test_search_shared_phone_returns_oldest(client: AsyncClient, student_payload: dict) -> None:
    first = (await client.post(STUDENTS_URL, json=student_payload)).json()
    await client.post(STUDENTS_URL, json=_other_student(student_payload))

    response = await client.get(f"{STUDENTS_URL}/search", params={"phone_number": student_payload["phone_number"]})
    assert response.status_code == 200
    assert response.json()["id"] == first["id"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params,status_code",
    [
        ({}, 400),
        ({"roll_no": "2026-001"}, 400),
        ({"phone_number": "98765"}, 400),
        ({"roll_no": "1999001"}, 404),
        ({"email": "nobody@example.com"}, 404),
    ],
)
async def test_search_errors(client: AsyncClient, params: dict, status_code: int) -> None:
    response = await client.get(f"{STUDENTS_URL}/search", params=params)
    assert response.status_code == status_code


@pytest.mark.asyncio
async def test_get_student_by_id(client: AsyncClient, student_payload: dict) -> None:
    created = (await client.post(STUDENTS_URL, json=student_payload)).json()

    response = await client.get(f"{STUDENTS_URL}/{created['id']}")
    assert response.status_code == 200
    assert response.json()["roll_no"] == created["roll_no"]

    missing = await client.get(f"{STUDENTS_URL}/{uuid.uuid4()}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_requires_token(client: AsyncClient, student_payload: dict) -> None:
    response = await client.post(STUDENTS_URL, json=student_payload, headers={"Authorization": ""})
    assert response.status_code == 401

    response = await client.get(f"{STUDENTS_URL}/search", params={"roll_no": "2026001"}, headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_requires_permission(client: AsyncClient, student_payload: dict) -> None:
    reader = create_access_token(
        subject={
            "sub": str(uuid.uuid4()),
            "role": "RECEPTIONIST",
            "permissions": {"students": {"read": True}},
        }
    )
    headers = {"Authorization": f"Bearer {reader}"}

    response = await client.post(STUDENTS_URL, json=student_payload, headers=headers)
    assert response.status_code == 403

    response = await client.get(f"{STUDENTS_URL}/search", params={"roll_no": "1999001"}, headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_roll_numbers_continue_past_999(client: AsyncClient, db_session: AsyncSession, student_payload: dict) -> None:
    year = date.today().year
    db_session.add(
        Student(
            id=uuid.uuid4(),
            roll_no=f"{year}999",
            full_name="Earlier Student",
            father_name="Earlier Father",
            gender="male",
            email="earlier@example.com",
            phone_number="9000000002",
            aadhar_number="444455556666",
            selected_course="PTE",
            course_duration="3 months",
            certification_title="PTE",
            joining_date=date(2026, 1, 1),
        )
    )
    await db_session.commit()

    first = await client.post(STUDENTS_URL, json=student_payload)
    second = await client.post(STUDENTS_URL, json=_other_student(student_payload))
    assert first.json()["roll_no"] == f"{year}1000"
    assert second.json()["roll_no"] == f"{year}1001"


# --- Edit student ---
@pytest.mark.asyncio
async def test_update_student_recomputes_certification(client: AsyncClient, student_payload: dict) -> None:
    created = (await client.post(STUDENTS_URL, json=student_payload)).json()

    response = await client.patch(
        f"{STUDENTS_URL}/{created['id']}",
        json={"selected_course": "Tally", "course_duration": "3 months", "full_name": "  Ravi K  "},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["certification_title"] == "CERTIFICATION IN COMPUTER ACCOUNTANCY"
    assert [s["code"] for s in data["subjects"]] == ["CS-01", "CS-02", "CS-07", "CS-08"]
    assert data["full_name"] == "Ravi K"
    assert data["roll_no"] == created["roll_no"]
    assert data["email"] == created["email"]

    stored = (await client.get(f"{STUDENTS_URL}/{created['id']}")).json()
    assert stored["certification_title"] == "CERTIFICATION IN COMPUTER ACCOUNTANCY"


@pytest.mark.asyncio
async def test_update_duration_only_recomputes_certification(client: AsyncClient, student_payload: dict) -> None:
    created = (await client.post(STUDENTS_URL, json=student_payload)).json()

    response = await client.patch(f"{STUDENTS_URL}/{created['id']}", json={"course_duration": "1 year"})
    assert response.status_code == 200
    assert response.json()["certification_title"] == "ADVANCE DIPLOMA IN COMPUTER APPLICATION"


@pytest.mark.asyncio
async def test_update_student_other_fields_keep_certification(client: AsyncClient, student_payload: dict) -> None:
    created = (await client.post(STUDENTS_URL, json=student_payload)).json()

    response = await client.patch(
        f"{STUDENTS_URL}/{created['id']}",
        json={"address": "44 Mall Road", "email": student_payload["email"], "qualification": "Graduated"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["address"] == "44 Mall Road"
    assert data["qualification"] == "Graduated"
    assert data["certification_title"] == "DIPLOMA IN COMPUTER APPLICATION"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "changes",
    [
        {"email": "anita.sharma@example.com"},
        {"email": "ANITA.SHARMA@example.com"},
        {"aadhar_number": "567856785678"},
    ],
)
async def test_update_student_duplicate_rejected(client: AsyncClient, student_payload: dict, changes: dict) -> None:
    created = (await client.post(STUDENTS_URL, json=student_payload)).json()
    await client.post(STUDENTS_URL, json=_other_student(student_payload))

    response = await client.patch(f"{STUDENTS_URL}/{created['id']}", json=changes)
    assert response.status_code == 409

    stored = (await client.get(f"{STUDENTS_URL}/{created['id']}")).json()
    assert stored["email"] == created["email"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {},
        {"full_name": None},
        {"phone_number": "12345"},
        {"aadhar_number": "12"},
        {"selected_course": "Knitting"},
        {"course_duration": "2 weeks"},
    ],
)
async def test_update_student_invalid_payload(client: AsyncClient, student_payload: dict, body: dict) -> None:
    created = (await client.post(STUDENTS_URL, json=student_payload)).json()

    response = await client.patch(f"{STUDENTS_URL}/{created['id']}", json=body)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_unknown_student(client: AsyncClient) -> None:
    response = await client.patch(f"{STUDENTS_URL}/{uuid.uuid4()}", json={"address": "Nowhere"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_joining_date_edit_keeps_due_dates_until_regenerated(client: AsyncClient, student_payload: dict) -> None:
    created = (await client.post(STUDENTS_URL, json=student_payload)).json()
    params = {"roll_no": created["roll_no"]}

    response = await client.patch(f"{STUDENTS_URL}/{created['id']}", json={"joining_date": "2026-02-01"})
    assert response.status_code == 200
    assert response.json()["joining_date"] == "2026-02-01"

    ledger = (await client.get("/api/v1/fees/student", params=params)).json()
    assert [i["due_date"] for i in ledger["installments"]] == ["2026-01-15", "2026-02-15", "2026-03-15"]

    ledger = (await client.patch("/api/v1/fees/student", json={**params, "installment_count": 2})).json()
    assert [i["due_date"] for i in ledger["installments"]] == ["2026-02-01", "2026-03-01"]


@pytest.mark.asyncio
async def test_update_student_requires_permission(client: AsyncClient, student_payload: dict) -> None:
    created = (await client.post(STUDENTS_URL, json=student_payload)).json()
    reader = create_access_token(
        subject={"sub": str(uuid.uuid4()), "role": "RECEPTIONIST", "permissions": {"students": {"read": True}}}
    )

    response = await client.patch(
        f"{STUDENTS_URL}/{created['id']}",
        json={"address": "44 Mall Road"},
        headers={"Authorization": f"Bearer {reader}"},
    )
    assert response.status_code == 403
