import asyncio
import logging
from datetime import date
from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, WebSocket, status
from fastapi.websockets import WebSocketDisconnect, WebSocketState
from sqlalchemy.orm import Session

import crud
from auth import get_current_user, user_from_token
from database import RECORD_ID_PATTERN, User, get_db
from notifier import (
    CATEGORY_CREATED,
    CATEGORY_DELETED,
    CATEGORY_UPDATED,
    EXPENSE_CREATED,
    EXPENSE_DELETED,
    EXPENSE_UPDATED,
    ChangeNotifier,
    Subscription,
    get_notifier,
)
from schemas import (
    BatchDeleteIn,
    BatchDeleteOut,
    CategoryIn,
    CategoryOut,
    ExpenseIn,
    ExpenseOut,
    ExpensePatch,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()
category_router = APIRouter()
events_router = APIRouter()

ExpenseId = Annotated[str, Path(pattern=RECORD_ID_PATTERN, description="Expense identifier")]
CategoryId = Annotated[str, Path(pattern=RECORD_ID_PATTERN, description="Category identifier")]


def _expense_payload(expense) -> ExpenseOut:
    return ExpenseOut.model_validate(expense)


def _category_payload(category) -> CategoryOut:
    return CategoryOut.model_validate(category)


def _wire(model):
    return model.model_dump(mode="json", by_alias=True)


@router.get("/expenses", response_model=SuccessResponse[list[ExpenseOut]])
async def get_expenses(
    category: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    sort: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expenses = crud.list_expenses(
        db,
        current_user.username,
        category=category,
        start_date=start_date,
        end_date=end_date,
        sort=sort,
    )
    return SuccessResponse(data=[_expense_payload(expense) for expense in expenses])


@router.get("/expenses/{expense_id}", response_model=SuccessResponse[ExpenseOut])
async def get_expense(
    expense_id: ExpenseId,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense = crud.get_expense(db, current_user.username, expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return SuccessResponse(data=_expense_payload(expense))


@router.post(
    "/expenses",
    response_model=SuccessResponse[ExpenseOut],
    status_code=status.HTTP_201_CREATED,
)
async def create_expense(
    expense: ExpenseIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    db_expense = crud.create_expense(db, current_user.username, expense)
    payload = _expense_payload(db_expense)
    logger.info("Expense %s created for %s", payload.id, current_user.username)

    notifier.publish(current_user.username, EXPENSE_CREATED, _wire(payload))
    return SuccessResponse(data=payload, message="Expense created")


async def _update_expense(db, current_user, notifier, expense_id, fields):
    db_expense = crud.update_expense(db, current_user.username, expense_id, fields)
    if db_expense is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    payload = _expense_payload(db_expense)
    logger.info("Expense %s updated for %s", expense_id, current_user.username)

    notifier.publish(current_user.username, EXPENSE_UPDATED, _wire(payload))
    return SuccessResponse(data=payload, message="Expense updated")


@router.put("/expenses/{expense_id}", response_model=SuccessResponse[ExpenseOut])
async def replace_expense(
    expense: ExpenseIn,
    expense_id: ExpenseId,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    return await _update_expense(db, current_user, notifier, expense_id, expense.model_dump())


@router.patch("/expenses/{expense_id}", response_model=SuccessResponse[ExpenseOut])
async def patch_expense(
    expense: ExpensePatch,
    expense_id: ExpenseId,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    fields = expense.model_dump(exclude_unset=True)
    return await _update_expense(db, current_user, notifier, expense_id, fields)


@router.delete("/expenses/batch/delete", response_model=SuccessResponse[BatchDeleteOut])
async def delete_expenses(
    batch: BatchDeleteIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    deleted_ids = crud.delete_expenses(db, current_user.username, batch.ids)
    for expense_id in deleted_ids:
        notifier.publish(current_user.username, EXPENSE_DELETED, expense_id)

    if not deleted_ids:
        message = "Nothing deleted"
    else:
        message = f"Deleted {len(deleted_ids)} expense(s)"
        logger.info("Batch deleted %d expense(s) for %s", len(deleted_ids), current_user.username)
    result = BatchDeleteOut(deleted_count=len(deleted_ids), deleted_ids=deleted_ids)
    return SuccessResponse(data=result, message=message)


@router.delete("/expenses/{expense_id}", response_model=SuccessResponse[dict])
async def delete_expense(
    expense_id: ExpenseId,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    if not crud.delete_expense(db, current_user.username, expense_id):
        raise HTTPException(status_code=404, detail="Expense not found")
    logger.info("Expense %s deleted for %s", expense_id, current_user.username)

    notifier.publish(current_user.username, EXPENSE_DELETED, expense_id)
    return SuccessResponse(data={"id": expense_id}, message="Expense deleted successfully")


# categories


@category_router.get("/categories", response_model=SuccessResponse[list[CategoryOut]])
async def get_categories(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    categories = crud.list_categories(db, current_user.username)
    return SuccessResponse(data=[_category_payload(category) for category in categories])


@category_router.get("/categories/{category_id}", response_model=SuccessResponse[CategoryOut])
async def get_category(
    category_id: CategoryId,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    category = crud.get_category(db, current_user.username, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return SuccessResponse(data=_category_payload(category))


@category_router.post(
    "/categories",
    response_model=SuccessResponse[CategoryOut],
    status_code=status.HTTP_201_CREATED,
)
async def create_category(
    category: CategoryIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    db_category = crud.create_category(db, current_user.username, category)
    payload = _category_payload(db_category)

    notifier.publish(current_user.username, CATEGORY_CREATED, _wire(payload))
    return SuccessResponse(data=payload, message="Category created")


@category_router.put("/categories/{category_id}", response_model=SuccessResponse[CategoryOut])
async def update_category(
    category: CategoryIn,
    category_id: CategoryId,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    db_category = crud.update_category(db, current_user.username, category_id, category)
    if db_category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    payload = _category_payload(db_category)

    notifier.publish(current_user.username, CATEGORY_UPDATED, _wire(payload))
    return SuccessResponse(data=payload, message="Category updated")


@category_router.delete("/categories/{category_id}", response_model=SuccessResponse[dict])
async def delete_category(
    category_id: CategoryId,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    if not crud.delete_category(db, current_user.username, category_id):
        raise HTTPException(status_code=404, detail="Category not found")

    notifier.publish(current_user.username, CATEGORY_DELETED, category_id)
    return SuccessResponse(data={"id": category_id}, message="Category removed")


# push channel


async def _watch_disconnect(websocket: WebSocket, subscription: Subscription):
    # ends the send loop once the client goes away
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        subscription.close()


@events_router.websocket("/ws")
async def expense_events(websocket: WebSocket, token: str = Query("")):
    app = websocket.app
    db = app.state.database.session()
    try:
        user = user_from_token(token, db, app.state.settings)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    notifier = app.state.notifier
    # registered before the handshake completes so no event after connect is missed
    subscription = notifier.subscribe(user.username)
    await websocket.accept()
    watcher = asyncio.create_task(_watch_disconnect(websocket, subscription))
    try:
        while True:
            message = await subscription.get()
            if message is None:
                break
            await websocket.send_json(message)
    except WebSocketDisconnect:
        logger.debug("Client for %s went away mid-send", user.username)
    finally:
        notifier.unsubscribe(subscription)
        watcher.cancel()
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
