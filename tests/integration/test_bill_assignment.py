"""Integration tests: bill assignment against a real database."""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4
from httpx import AsyncClient

from app.core.exceptions import (
    AlreadyAssignedError,
    BillNotFoundError,
    InvalidStageError,
    UserLimitExceededError,
    UserNotFoundError,
)
from app.core.policy import AssignmentPolicy
from app.models.enums import BillStage
from app.services.bill_assignment_service import BillAssignmentService
from app.services.bill_service import BillService
from app.services.user_service import UserService
from app.utils.time import get_utc_now


async def _assign(session_factory, user_id, bill_id=None, policy=None):
    async with session_factory() as session:
        return await BillAssignmentService.assign_bill(
            session, user_id, bill_id, policy=policy or AssignmentPolicy(isolation_level=None)
        )


async def _reload(session_factory, bill_id):
    async with session_factory() as session:
        return await BillService.get_bill_by_id(session, bill_id)


async def _count(session_factory, user_id):
    async with session_factory() as session:
        return await UserService.count_assigned_bills(session, user_id)


# --- Service level ---


@pytest.mark.asyncio
async def test_assign_draft_bill_leaves_submitted_at_unset(session_factory, make_user, make_bill):
    user = await make_user()
    bill = await make_bill(stage=BillStage.DRAFT)

    assigned = await _assign(session_factory, user.id, bill.id)

    assert assigned.id == bill.id
    assert assigned.assigned_to_id == user.id
    assert assigned.assigned_to.email == user.email
    assert assigned.stage == BillStage.DRAFT
    assert assigned.submitted_at is None


@pytest.mark.asyncio
async def test_assign_submitted_bill_stamps_submitted_at(session_factory, make_user, make_bill):
    user = await make_user()
    bill = await make_bill(stage=BillStage.SUBMITTED)
    before = get_utc_now()

    assigned = await _assign(session_factory, user.id, bill.id)

    assert assigned.submitted_at is not None
    assert assigned.submitted_at >= before - timedelta(seconds=1)
    assert assigned.stage == BillStage.SUBMITTED


@pytest.mark.asyncio
async def test_assign_keeps_existing_submitted_at(session_factory, make_user, make_bill):
    user = await make_user()
    stamped = get_utc_now() - timedelta(days=3)
    bill = await make_bill(stage=BillStage.SUBMITTED, submitted_at=stamped)

    assigned = await _assign(session_factory, user.id, bill.id)

    assert assigned.submitted_at == stamped


@pytest.mark.asyncio
async def test_fourth_assignment_exceeds_cap(session_factory, make_user, make_bill):
    user = await make_user()
    for _ in range(3):
        await make_bill(assigned_to=user)
    extra = await make_bill()

    with pytest.raises(UserLimitExceededError):
        await _assign(session_factory, user.id, extra.id)

    reloaded = await _reload(session_factory, extra.id)
    assert reloaded.assigned_to_id is None
    assert await _count(session_factory, user.id) == 3


@pytest.mark.asyncio
async def test_cap_can_be_lowered_by_policy(session_factory, make_user, make_bill):
    user = await make_user()
    await make_bill(assigned_to=user)
    extra = await make_bill()

    with pytest.raises(UserLimitExceededError):
        await _assign(
            session_factory, user.id, extra.id,
            policy=AssignmentPolicy(max_bills_per_user=1, isolation_level=None),
        )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "stage",
    [BillStage.APPROVED, BillStage.PAYING, BillStage.ON_HOLD, BillStage.REJECTED, BillStage.PAID],
)
async def test_non_assignable_stage_rejected(session_factory, make_user, make_bill, stage):
    user = await make_user()
    bill = await make_bill(stage=stage)

    with pytest.raises(InvalidStageError):
        await _assign(session_factory, user.id, bill.id)

    assert (await _reload(session_factory, bill.id)).assigned_to_id is None


@pytest.mark.asyncio
async def test_named_bill_already_assigned(session_factory, make_user, make_bill):
    owner = await make_user()
    other = await make_user()
    bill = await make_bill(assigned_to=owner)

    with pytest.raises(AlreadyAssignedError):
        await _assign(session_factory, other.id, bill.id)

    assert (await _reload(session_factory, bill.id)).assigned_to_id == owner.id


@pytest.mark.asyncio
async def test_unknown_user(session_factory, make_bill):
    bill = await make_bill()
    with pytest.raises(UserNotFoundError):
        await _assign(session_factory, uuid4(), bill.id)


@pytest.mark.asyncio
async def test_unknown_bill(session_factory, make_user):
    user = await make_user()
    with pytest.raises(BillNotFoundError):
        await _assign(session_factory, user.id, uuid4())


@pytest.mark.asyncio
async def test_implicit_selection_prefers_submitted_queue(session_factory, make_user, make_bill):
    user = await make_user()
    now = get_utc_now()
    await make_bill(stage=BillStage.DRAFT)
    await make_bill(stage=BillStage.APPROVED)
    newer_submitted = await make_bill(stage=BillStage.SUBMITTED, submitted_at=now - timedelta(hours=1))
    older_submitted = await make_bill(stage=BillStage.SUBMITTED, submitted_at=now - timedelta(days=2))

    first = await _assign(session_factory, user.id)
    second = await _assign(session_factory, user.id)

    assert first.id == older_submitted.id
    assert second.id == newer_submitted.id


@pytest.mark.asyncio
async def test_implicit_selection_falls_back_to_oldest_draft(session_factory, make_user, make_bill):
    user = await make_user()
    other = await make_user()
    await make_bill(stage=BillStage.DRAFT, assigned_to=other)
    oldest_free = await make_bill(stage=BillStage.DRAFT)
    await make_bill(stage=BillStage.DRAFT)

    assigned = await _assign(session_factory, user.id)

    assert assigned.id == oldest_free.id
    assert assigned.assigned_to_id == user.id


@pytest.mark.asyncio
async def test_implicit_selection_with_nothing_eligible(session_factory, make_user, make_bill):
    user = await make_user()
    await make_bill(stage=BillStage.PAID)
    await make_bill(stage=BillStage.DRAFT, assigned_to=await make_user())

    with pytest.raises(BillNotFoundError):
        await _assign(session_factory, user.id)


@pytest.mark.asyncio
async def test_count_reflects_exactly_one_increment(session_factory, make_user, make_bill):
    user = await make_user()
    await make_bill(assigned_to=user)
    bill = await make_bill()

    assert await _count(session_factory, user.id) == 1
    await _assign(session_factory, user.id, bill.id)
    assert await _count(session_factory, user.id) == 2


# --- HTTP level ---


@pytest.mark.asyncio
async def test_assign_endpoint_success(async_client: AsyncClient, api_base: str, make_user, make_bill):
    user = await make_user(name="Ada Lovelace")
    bill = await make_bill(stage=BillStage.SUBMITTED)

    resp = await async_client.post(
        f"{api_base}/bills/assign",
        json={"user_id": str(user.id), "bill_id": str(bill.id)},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Bill assigned successfully"
    data = body["data"]
    assert data["id"] == str(bill.id)
    assert data["assigned_to"]["name"] == "Ada Lovelace"
    assert data["stage"] == {"label": "Submitted", "assignable": True}
    assert data["submitted_at"] is not None


@pytest.mark.asyncio
async def test_assign_endpoint_implicit(async_client: AsyncClient, api_base: str, make_user, make_bill):
    user = await make_user()
    bill = await make_bill()

    resp = await async_client.post(f"{api_base}/bills/assign", json={"user_id": str(user.id)})
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["id"] == str(bill.id)


@pytest.mark.asyncio
async def test_assign_endpoint_error_mapping(async_client: AsyncClient, api_base: str, make_user, make_bill):
    user = await make_user()
    full = await make_user()
    for _ in range(3):
        await make_bill(assigned_to=full)
    approved = await make_bill(stage=BillStage.APPROVED)
    taken = await make_bill(assigned_to=full)
    free = await make_bill()

    cases = [
        ({"user_id": str(uuid4()), "bill_id": str(free.id)}, 404, "USER_NOT_FOUND"),
        ({"user_id": str(user.id), "bill_id": str(uuid4())}, 404, "BILL_NOT_FOUND"),
        ({"user_id": str(full.id), "bill_id": str(free.id)}, 409, "USER_BILL_LIMIT_EXCEEDED"),
        ({"user_id": str(user.id), "bill_id": str(approved.id)}, 400, "INVALID_BILL_STAGE"),
        ({"user_id": str(user.id), "bill_id": str(taken.id)}, 409, "BILL_ALREADY_ASSIGNED"),
    ]
    for payload, status_code, code in cases:
        resp = await async_client.post(f"{api_base}/bills/assign", json=payload)
        assert resp.status_code == status_code, (code, resp.text)
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == code


@pytest.mark.asyncio
async def test_assign_endpoint_validation(async_client: AsyncClient, api_base: str):
    resp = await async_client.post(f"{api_base}/bills/assign", json={})
    assert resp.status_code == 422
    resp = await async_client.post(f"{api_base}/bills/assign", json={"user_id": "not-a-uuid"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_assign_endpoint_conflict_after_lost_claims(
    async_client: AsyncClient, api_base: str, session_factory, make_user, make_bill
):
    """Every claim lost: 503 envelope with a retry hint and no mutation."""
    user = await make_user()
    bill = await make_bill()

    with patch(
        "app.services.bill_assignment_service.BillAssignmentService._claim",
        new_callable=AsyncMock,
        return_value=False,
    ) as mock_claim:
        resp = await async_client.post(
            f"{api_base}/bills/assign",
            json={"user_id": str(user.id), "bill_id": str(bill.id)},
        )

    assert mock_claim.await_count == 3
    assert resp.status_code == 503, resp.text
    assert resp.headers["Retry-After"] == "1"
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "CONCURRENT_UPDATE"
    assert (await _reload(session_factory, bill.id)).assigned_to_id is None
