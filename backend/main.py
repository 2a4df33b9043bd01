"""
FastAPI backend service for statement ingestion.
"""
from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from statement_ingest import ColumnMappingIncomplete, ParseOptions, StatementParseError, parse_statement
from statement_ingest.core.rules import list_rules

app = FastAPI(title="Statement Ingest API", version="1.0.0")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = ('.xls', '.xlsx', '.xlsm', '.csv')


def _check_extension(filename: str):
    if not filename or not filename.lower().endswith(ALLOWED_EXTENSIONS):
        raise HTTPException(status_code=400, detail="File must be .xls, .xlsx or .csv")


def _parse_error_response(e: StatementParseError) -> JSONResponse:
    content = {
        "success": False,
        "error": type(e).__name__,
        "message": e.user_message,
        "detail": str(e),
    }
    if isinstance(e, ColumnMappingIncomplete):
        # Partial mapping lets the client show which headers were recognised
        content["missing"] = e.missing
        content["header_map"] = e.header_map.model_dump(mode="json")
    return JSONResponse(status_code=422, content=content)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "Statement Ingest API", "status": "healthy"}


@app.post("/parse")
async def parse_file(file: UploadFile = File(...), dedupe: bool = False, strict: bool = False):
    """
    Parse an uploaded statement export.

    Args:
        file: Uploaded .xls, .xlsx or .csv file
        dedupe: Remove duplicate transactions within the file
        strict: Match duplicates on date and amount only

    Returns:
        Transactions, diagnostics and an income/expense summary
    """
    _check_extension(file.filename)
    content = await file.read()
    logger.info(f"Processing statement: {file.filename}")

    try:
        options = ParseOptions(deduplicate=dedupe, strict_duplicates=strict)
        result = parse_statement(content, filename=file.filename, options=options)
    except StatementParseError as e:
        logger.warning(f"Could not parse {file.filename}: {e}")
        return _parse_error_response(e)

    logger.info(f"Successfully parsed statement: {len(result.transactions)} transactions found")
    return JSONResponse(content={
        "success": True,
        "data": result.model_dump(mode="json"),
        "summary": result.summary(),
    })


@app.post("/detect")
async def detect_file(file: UploadFile = File(...)):
    """
    Detect issuer, sheet and header layout without returning transactions.

    Args:
        file: Uploaded statement file

    Returns:
        Parse diagnostics
    """
    _check_extension(file.filename)
    content = await file.read()

    try:
        result = parse_statement(content, filename=file.filename)
    except StatementParseError as e:
        logger.warning(f"Could not detect format of {file.filename}: {e}")
        return _parse_error_response(e)

    return JSONResponse(content={
        "success": True,
        "issuer": result.diagnostics.issuer,
        "diagnostics": result.diagnostics.model_dump(mode="json"),
    })


@app.get("/rules")
async def available_rules():
    """List bundled detection rule sets."""
    return JSONResponse(content={
        "success": True,
        "rules": [
            {"id": rules_id, "file": path.name}
            for rules_id, path in list_rules().items()
        ]
    })


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
