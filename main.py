import json
import os
from contextlib import asynccontextmanager
from typing import Any, Dict

import structlog
from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import database
from database import (
    EXPENSES,
    REVENUES,
    TASKS,
    create_document,
    delete_document,
    get_db,
    get_documents,
    serialize_doc,
    update_document,
)
from logging_config import configure_logging
from schemas import Expense, Revenue, Task

configure_logging()
logger = structlog.get_logger()

DELETED = {"message": "Deleted"}


def error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@asynccontextmanager
async def lifespan(app: FastAPI):
    await database.connect()
    yield
    await database.disconnect()


app = FastAPI(title="Financials API", lifespan=lifespan)


def reject_constant(name):
    raise ValueError(f"{name} is not valid JSON")


# Every body sent as JSON must parse, whatever the route
@app.middleware("http")
async def reject_malformed_json(request: Request, call_next):
    content_type = request.headers.get("content-type", "")
    if "json" in content_type:
        body = await request.body()
        if body:
            try:
                json.loads(body, parse_constant=reject_constant)
            except ValueError:
                logger.warning("malformed_json_rejected", method=request.method, path=request.url.path)
                return error(400, "Invalid JSON body")
    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def invalid_body_handler(request: Request, exc: RequestValidationError):
    logger.warning("invalid_body_rejected", method=request.method, path=request.url.path)
    return error(400, "Invalid request body")


@app.get("/")
def read_root():
    return {"message": "Financials backend is running"}


@app.get("/test")
async def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    if database.db is not None:
        response["database"] = "✅ Available"
        response["database_name"] = database.db.name
        response["connection_status"] = "Connected"

        try:
            collections = await database.db.list_collection_names()
            response["collections"] = collections[:10]
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    else:
        response["database"] = "⚠️  Available but not initialized"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    if response["database_name"] is None:
        response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"

    return response


# Tasks
@app.get("/tasks/{person}")
async def list_tasks(person: str, db=Depends(get_db)):
    logger.info("tasks_requested", person=person)
    try:
        tasks = await get_documents(db, TASKS, {"person": person})
    except Exception:
        logger.exception("tasks_fetch_failed", person=person)
        return error(500, "Failed to fetch tasks")
    logger.info("tasks_found", person=person, count=len(tasks))
    return [serialize_doc(t) for t in tasks]


@app.post("/tasks")
async def create_task(payload: Dict[str, Any] = Body(default={}), db=Depends(get_db)):
    logger.info("task_create_requested", payload=payload)
    try:
        task = await create_document(db, TASKS, Task.model_validate(payload).to_document())
    except Exception:
        logger.exception("task_create_failed")
        return error(500, "Failed to create task")
    logger.info("task_created", task_id=str(task["_id"]))
    return serialize_doc(task)


@app.put("/tasks/{id}")
async def update_task(id: str, payload: Dict[str, Any] = Body(default={}), db=Depends(get_db)):
    logger.info("task_update_requested", task_id=id, payload=payload)
    try:
        updated = await update_document(db, TASKS, id, Task.model_validate(payload).to_document())
    except Exception:
        logger.exception("task_update_failed", task_id=id)
        return error(500, "Failed to update task")
    if not updated:
        logger.info("task_not_found", task_id=id)
        return error(404, "Task not found")
    logger.info("task_updated", task_id=id)
    return serialize_doc(updated)


@app.delete("/tasks/{id}")
async def delete_task(id: str, db=Depends(get_db)):
    logger.info("task_delete_requested", task_id=id)
    try:
        deleted = await delete_document(db, TASKS, id)
    except Exception:
        logger.exception("task_delete_failed", task_id=id)
        return error(500, "Failed to delete task")
    if not deleted:
        logger.info("task_not_found", task_id=id)
        return error(404, "Task not found")
    logger.info("task_deleted", task_id=id)
    return DELETED


# Revenues
@app.get("/revenues")
async def list_revenues(db=Depends(get_db)):
    logger.info("revenues_requested")
    try:
        revenues = await get_documents(db, REVENUES)
    except Exception:
        logger.exception("revenues_fetch_failed")
        return error(500, "Failed to fetch revenues")
    logger.info("revenues_found", count=len(revenues))
    return [serialize_doc(r) for r in revenues]


@app.post("/revenues")
async def create_revenue(payload: Dict[str, Any] = Body(default={}), db=Depends(get_db)):
    logger.info("revenue_create_requested", payload=payload)
    try:
        revenue = await create_document(db, REVENUES, Revenue.model_validate(payload).to_document())
    except Exception:
        logger.exception("revenue_create_failed")
        return error(500, "Failed to create revenue")
    logger.info("revenue_created", revenue_id=str(revenue["_id"]))
    return serialize_doc(revenue)


@app.delete("/revenues/{id}")
async def delete_revenue(id: str, db=Depends(get_db)):
    logger.info("revenue_delete_requested", revenue_id=id)
    try:
        deleted = await delete_document(db, REVENUES, id)
    except Exception:
        logger.exception("revenue_delete_failed", revenue_id=id)
        return error(500, "Failed to delete revenue")
    if not deleted:
        logger.info("revenue_not_found", revenue_id=id)
        return error(404, "Revenue not found")
    logger.info("revenue_deleted", revenue_id=id)
    return DELETED


# Expenses
@app.get("/expenses")
async def list_expenses(db=Depends(get_db)):
    logger.info("expenses_requested")
    try:
        expenses = await get_documents(db, EXPENSES)
    except Exception:
        logger.exception("expenses_fetch_failed")
        return error(500, "Failed to fetch expenses")
    logger.info("expenses_found", count=len(expenses))
    return [serialize_doc(e) for e in expenses]


@app.post("/expenses")
async def create_expense(payload: Dict[str, Any] = Body(default={}), db=Depends(get_db)):
    logger.info("expense_create_requested", payload=payload)
    try:
        expense = await create_document(db, EXPENSES, Expense.model_validate(payload).to_document())
    except Exception:
        logger.exception("expense_create_failed")
        return error(500, "Failed to create expense")
    logger.info("expense_created", expense_id=str(expense["_id"]))
    return serialize_doc(expense)


@app.delete("/expenses/{id}")
async def delete_expense(id: str, db=Depends(get_db)):
    logger.info("expense_delete_requested", expense_id=id)
    try:
        deleted = await delete_document(db, EXPENSES, id)
    except Exception:
        logger.exception("expense_delete_failed", expense_id=id)
        return error(500, "Failed to delete expense")
    if not deleted:
        logger.info("expense_not_found", expense_id=id)
        return error(404, "Expense not found")
    logger.info("expense_deleted", expense_id=id)
    return DELETED


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
