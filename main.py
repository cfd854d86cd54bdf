from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

import actions
from actions import ActionResult
from auth import OwnerContext, owner_from_authorization
from config import get_settings
from database import SessionLocal
from formatting import local_today
from scheduler import SchedulerManager
from services import ErrorKind

app = FastAPI(title="Finance Tracker")

ERROR_STATUS = {
    ErrorKind.unauthorized: 401,
    ErrorKind.validation: 422,
    ErrorKind.conflict: 409,
    ErrorKind.referential: 409,
    ErrorKind.not_found: 404,
    ErrorKind.unknown: 400,
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_owner(authorization: Optional[str] = Header(default=None)) -> OwnerContext:
    return owner_from_authorization(authorization)


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def respond(result: ActionResult, success_status: int = 200) -> JSONResponse:
    status_code = success_status if result.ok else ERROR_STATUS[result.error]
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result))


@app.get("/api/dashboard")
def dashboard(
    owner: OwnerContext = Depends(get_owner),
    factory: sessionmaker = Depends(get_session_factory),
):
    settings = get_settings()
    summary = actions.get_dashboard(
        factory, owner, today=local_today(), max_workers=settings.dashboard_workers
    )
    return jsonable_encoder(summary)


# Categories


@app.get("/api/categories")
def categories_index(
    owner: OwnerContext = Depends(get_owner), db: Session = Depends(get_db)
):
    return respond(actions.list_categories(db, owner))


@app.post("/api/categories")
def categories_create(
    payload: dict[str, Any] = Body(...),
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.create_category(db, owner, payload), 201)


@app.post("/api/categories/defaults")
def categories_seed(
    owner: OwnerContext = Depends(get_owner), db: Session = Depends(get_db)
):
    return respond(actions.seed_default_categories(db, owner))


@app.put("/api/categories/{category_id}")
def categories_update(
    category_id: int,
    payload: dict[str, Any] = Body(...),
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.update_category(db, owner, category_id, payload))


@app.delete("/api/categories/{category_id}")
def categories_delete(
    category_id: int,
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.delete_category(db, owner, category_id))


# Transactions


@app.get("/api/transactions")
def transactions_index(
    request: Request,
    page: int = 1,
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    filters = {k: v for k, v in request.query_params.items() if k != "page"}
    return respond(actions.list_transactions(db, owner, filters, page))


@app.post("/api/transactions")
def transactions_create(
    payload: dict[str, Any] = Body(...),
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.create_transaction(db, owner, payload), 201)


@app.put("/api/transactions/{transaction_id}")
def transactions_update(
    transaction_id: int,
    payload: dict[str, Any] = Body(...),
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.update_transaction(db, owner, transaction_id, payload))


@app.delete("/api/transactions/{transaction_id}")
def transactions_delete(
    transaction_id: int,
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.soft_delete_transaction(db, owner, transaction_id))


# Income sources


@app.get("/api/income-sources")
def income_index(
    month: Optional[int] = None,
    year: Optional[int] = None,
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    today = local_today()
    return respond(
        actions.list_income_sources(
            db, owner, month or today.month, year or today.year
        )
    )


@app.post("/api/income-sources")
def income_create(
    payload: dict[str, Any] = Body(...),
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.create_income_source(db, owner, payload), 201)


@app.put("/api/income-sources/{source_id}")
def income_update(
    source_id: int,
    payload: dict[str, Any] = Body(...),
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.update_income_source(db, owner, source_id, payload))


@app.post("/api/income-sources/{source_id}/received")
def income_toggle_received(
    source_id: int,
    is_received: bool = Body(..., embed=True),
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.toggle_income_received(db, owner, source_id, is_received))


@app.delete("/api/income-sources/{source_id}")
def income_delete(
    source_id: int,
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.delete_income_source(db, owner, source_id))


# Recurring expenses


@app.get("/api/recurring")
def recurring_index(
    owner: OwnerContext = Depends(get_owner), db: Session = Depends(get_db)
):
    return respond(actions.list_recurring_expenses(db, owner))


@app.post("/api/recurring")
def recurring_create(
    payload: dict[str, Any] = Body(...),
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.create_recurring_expense(db, owner, payload), 201)


@app.put("/api/recurring/{expense_id}")
def recurring_update(
    expense_id: int,
    payload: dict[str, Any] = Body(...),
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.update_recurring_expense(db, owner, expense_id, payload))


@app.post("/api/recurring/{expense_id}/active")
def recurring_toggle_active(
    expense_id: int,
    is_active: bool = Body(..., embed=True),
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.toggle_recurring_active(db, owner, expense_id, is_active))


@app.delete("/api/recurring/{expense_id}")
def recurring_delete(
    expense_id: int,
    owner: OwnerContext = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return respond(actions.delete_recurring_expense(db, owner, expense_id))


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
