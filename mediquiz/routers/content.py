from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from starlette.concurrency import run_in_threadpool
import structlog

from mediquiz.deps import get_generator
from mediquiz.errors import FileProcessingError, FileValidationError, GenerationError
from mediquiz.middleware.rate_limit import ai_generation_limit
from mediquiz.schemas import AnalyzeContentRequest, ContentAnalysis, FileAnalysis
from mediquiz.services.file_processor import process_uploaded_file, resolve_mime_type, validate_file_upload
from mediquiz.services.llm import QuizGenerator
from mediquiz.services.monitoring import AI_GENERATION_REQUESTS

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["content"])


def _analyze(generator: QuizGenerator, text: str) -> ContentAnalysis:
    try:
        analysis = generator.analyze_content(text)
    except GenerationError as e:
        AI_GENERATION_REQUESTS.labels(type="analysis", status="error").inc()
        logger.error("content_analysis_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to analyze content")
    AI_GENERATION_REQUESTS.labels(type="analysis", status="success").inc()
    return analysis


@router.post("/analyze-content", response_model=ContentAnalysis)
@ai_generation_limit()
def analyze_content(request: Request, body: AnalyzeContentRequest, generator: QuizGenerator = Depends(get_generator)):
    if not body.text or not body.text.strip():
        raise HTTPException(status_code=400, detail="Text content is required")
    return _analyze(generator, body.text)


@router.post("/analyze-file", response_model=FileAnalysis)
@ai_generation_limit()
async def analyze_file(request: Request, file: UploadFile = File(...), generator: QuizGenerator = Depends(get_generator)):
    data = await file.read()
    filename = file.filename or "upload"
    mime_type = resolve_mime_type(filename, file.content_type)

    try:
        validate_file_upload(filename, mime_type, len(data))
        processed = await run_in_threadpool(process_uploaded_file, filename, mime_type, data, generator)
    except FileValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileProcessingError as e:
        logger.error("file_processing_failed", filename=filename, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    if not processed.text.strip():
        raise HTTPException(status_code=400, detail="Could not extract meaningful text from file")

    analysis = await run_in_threadpool(_analyze, generator, processed.text)
    return FileAnalysis(content=processed.text, analysis=analysis, metadata=processed.metadata)
