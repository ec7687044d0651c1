"""Asynchronous HTTP print service for the H-58C thermal receipt printer."""

import asyncio
import functools
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, AsyncIterator

import uvicorn
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from delivery import DeliveryContext, DeliveryMethod, DeliveryResult, Drawing, deliver
from documents import SAMPLE_SHIFT_CLOSURE, build_shift_closure, build_test_receipt
from errors import DeviceNotReady, FormattingError, InvalidRequest, ReceiptPrintError
from models import Template, validate_sale, validate_shift_closure
from print_tasks import PrintTask
from renderer import render

logger = logging.getLogger(__name__)

context = DeliveryContext()
# Fire-and-forget prints, drained by process_queue()
queue: asyncio.Queue[PrintTask] = asyncio.Queue()

# Upper bound for finishing queued prints on shutdown
SHUTDOWN_DRAIN_SECONDS = 30.0

_MESSAGES = {
    DeliveryMethod.DEVICE: "{document} printed successfully.",
    DeliveryMethod.SYSTEM_PRINTER: "{document} printed successfully via system printer.",
    DeliveryMethod.BUFFER_ONLY: "Print data prepared (printer may not be physically connected).",
}


def setup_logging() -> None:
    """Rotating file log plus console output."""
    log_dir = Path(config.LOG_DIR)
    log_dir.mkdir(exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / "app.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    logging.basicConfig(
        handlers=[handler, logging.StreamHandler()],
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_printer() -> None:
    if not context.printer.ready:
        logger.error("Print request failed: no printer device found")
        raise DeviceNotReady()


async def _deliver(draw: Drawing, label: str) -> DeliveryResult:
    """Run the fallback chain to completion even if the caller disconnects."""
    try:
        return await asyncio.shield(deliver(context, draw, label))
    except FormattingError as e:
        raise InvalidRequest(str(e)) from e


def _delivery_response(
    result: DeliveryResult, document: str, id_key: str, doc_id: Any
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "message": _MESSAGES[result.method].format(document=document),
        id_key: doc_id,
        "method": result.method.value,
        "timestamp": _now(),
    }
    if result.method is DeliveryMethod.BUFFER_ONLY:
        body["buffer_size"] = result.buffer_size
    return body


async def process_queue() -> None:
    """Process print queue continuously."""
    while True:
        task: PrintTask = await queue.get()
        try:
            result = await deliver(context, task.draw, task.label)
            logger.info("Queued %s finished via %s", task.label, result.method.value)
        except Exception as e:
            logger.error("Queue processing failed for %s: %s", task.label, e, exc_info=True)
        finally:
            queue.task_done()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await asyncio.get_running_loop().run_in_executor(None, context.startup)
    worker = asyncio.create_task(process_queue())
    logger.info(
        "Thermal print service started on %s:%d, printer %s",
        config.HOST,
        config.PORT,
        "ready" if context.printer.ready else "NOT ready",
    )
    try:
        yield
    finally:
        logger.info("Shutting down thermal print service...")
        try:
            await asyncio.wait_for(queue.join(), timeout=SHUTDOWN_DRAIN_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Shutdown with %d print task(s) still queued", queue.qsize())
        worker.cancel()
        context.printer.close()


app = FastAPI(title="Thermal Print Service", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.exception_handler(ReceiptPrintError)
async def receipt_error_handler(request: Request, exc: ReceiptPrintError) -> JSONResponse:
    content: dict[str, Any] = {"error": str(exc)}
    if isinstance(exc, DeviceNotReady):
        content["printer_ready"] = context.printer.ready
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Error during printing: %s", exc)
    return JSONResponse(status_code=500, content={"error": f"Print failed: {exc}"})


# --- Handlers ---
@app.get("/health")
async def health() -> dict[str, Any]:
    return {"status": "ok", "printer_ready": context.printer.ready, "timestamp": _now()}


@app.post("/test-print")
async def test_print() -> dict[str, Any]:
    """Queue the diagnostic receipt and answer before it prints."""
    _require_printer()
    logger.info("Test receipt queued for printing")
    await queue.put(PrintTask(label="test receipt", draw=build_test_receipt))
    return {
        "message": "Test print initiated successfully.",
        "status": "printing",
        "timestamp": _now(),
    }


@app.post("/print-shift-closure")
async def print_shift_closure(payload: Any = Body(default=None)) -> dict[str, Any]:
    _require_printer()
    record = validate_shift_closure(payload)
    logger.info("Printing shift closure receipt for shift ID: %s", record["id"])
    result = await _deliver(
        functools.partial(build_shift_closure, record), f"shift closure {record['id']}"
    )
    return _delivery_response(result, "Shift closure receipt", "shift_id", record["id"])


@app.post("/print-sale-receipt")
async def print_sale_receipt(payload: Any = Body(default=None)) -> dict[str, Any]:
    _require_printer()
    body = payload if isinstance(payload, dict) else {}
    record = validate_sale(body.get("saleData"))
    template = Template.from_dict(body.get("template"))
    sale_id = record.get("sale_id") or record["id"]
    logger.info(
        "Printing sale receipt for sale ID %s using template %r (id=%s, is_used=%s)",
        sale_id,
        template.name,
        template.id,
        template.is_used,
    )
    result = await _deliver(functools.partial(render, template, record), f"sale receipt {sale_id}")
    return _delivery_response(result, "Sale receipt", "sale_id", record["id"])


@app.post("/test-shift-closure-with-data")
async def test_shift_closure_with_data(payload: Any = Body(default=None)) -> dict[str, Any]:
    """Detailed shift closure for caller-supplied data, or the built-in sample."""
    _require_printer()
    record = validate_shift_closure(payload or SAMPLE_SHIFT_CLOSURE)
    logger.info("Printing test shift closure for shift ID: %s", record["id"])
    result = await _deliver(
        functools.partial(build_shift_closure, record, detailed=True),
        f"test shift closure {record['id']}",
    )
    return _delivery_response(result, "Test shift closure receipt", "shift_id", record["id"])


def main() -> None:
    """Run the service with uvicorn."""
    setup_logging()
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
