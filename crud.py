# crud.py
import logging
from datetime import date
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import Category, Expense, utcnow
from schemas import CategoryIn, ExpenseIn
from validation import is_record_id

logger = logging.getLogger(__name__)


def _commit(db: Session):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


# expenses


def list_expenses(
    db: Session,
    owner: str,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    sort: str = "desc",
):
    query = db.query(Expense).filter(Expense.owner == owner)
    if category:
        query = query.filter(Expense.category == category)
    if start_date:
        query = query.filter(Expense.date >= start_date)
    if end_date:
        query = query.filter(Expense.date <= end_date)

    if sort == "asc":
        query = query.order_by(Expense.date.asc(), Expense.created_at.asc())
    else:
        query = query.order_by(Expense.date.desc(), Expense.created_at.desc())
    return query.all()


def get_expense(db: Session, owner: str, expense_id: str):
    if not is_record_id(expense_id):
        return None
    return (
        db.query(Expense)
        .filter(Expense.id == expense_id, Expense.owner == owner)
        .first()
    )


def create_expense(db: Session, owner: str, expense: ExpenseIn):
    db_expense = Expense(
        owner=owner,
        description=expense.description,
        amount=expense.amount,
        category=expense.category,
        date=expense.date,
    )
    db.add(db_expense)
    _commit(db)
    db.refresh(db_expense)
    return db_expense


def update_expense(db: Session, owner: str, expense_id: str, fields: dict):
    """Apply ``fields`` to the caller's expense in one UPDATE ... RETURNING.

    Returns the updated row, or None when no row matched ``(id, owner)``.
    """
    if not is_record_id(expense_id):
        return None
    expenses = Expense.__table__
    statement = (
        update(expenses)
        .where(expenses.c.id == expense_id, expenses.c.owner == owner)
        .values(**fields, updated_at=utcnow())
        .returning(*expenses.c)
    )
    row = db.execute(statement).first()
    _commit(db)
    return row


def delete_expense(db: Session, owner: str, expense_id: str) -> bool:
    if not is_record_id(expense_id):
        return False
    deleted = (
        db.query(Expense)
        .filter(Expense.id == expense_id, Expense.owner == owner)
        .delete(synchronize_session=False)
    )
    _commit(db)
    return deleted > 0


def delete_expenses(db: Session, owner: str, expense_ids) -> list[str]:
    """Delete every listed expense owned by ``owner``; return the removed ids.

    Only ids removed by this statement are returned, so a record deleted
    concurrently by another request is never reported twice.
    """
    wanted = sorted({expense_id for expense_id in expense_ids if is_record_id(expense_id)})
    if not wanted:
        return []
    expenses = Expense.__table__
    statement = (
        delete(expenses)
        .where(expenses.c.id.in_(wanted), expenses.c.owner == owner)
        .returning(expenses.c.id)
    )
    removed = list(db.execute(statement).scalars().all())
    _commit(db)
    logger.debug("Batch delete for %s removed %d of %d ids", owner, len(removed), len(wanted))
    return removed


# categories


def list_categories(db: Session, owner: str):
    return (
        db.query(Category)
        .filter(Category.owner == owner)
        .order_by(Category.created_at.asc())
        .all()
    )


def get_category(db: Session, owner: str, category_id: str):
    if not is_record_id(category_id):
        return None
    return (
        db.query(Category)
        .filter(Category.id == category_id, Category.owner == owner)
        .first()
    )


def create_category(db: Session, owner: str, category: CategoryIn):
    db_category = Category(owner=owner, name=category.name)
    db.add(db_category)
    _commit(db)
    db.refresh(db_category)
    return db_category


def update_category(db: Session, owner: str, category_id: str, category: CategoryIn):
    if not is_record_id(category_id):
        return None
    categories = Category.__table__
    statement = (
        update(categories)
        .where(categories.c.id == category_id, categories.c.owner == owner)
        .values(name=category.name)
        .returning(*categories.c)
    )
    row = db.execute(statement).first()
    _commit(db)
    return row


def delete_category(db: Session, owner: str, category_id: str) -> bool:
    if not is_record_id(category_id):
        return False
    deleted = (
        db.query(Category)
        .filter(Category.id == category_id, Category.owner == owner)
        .delete(synchronize_session=False)
    )
    _commit(db)
    return deleted > 0
