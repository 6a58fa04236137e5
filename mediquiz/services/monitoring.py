"""
Health checks and monitoring with Prometheus metrics
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response
import time
import psutil
import structlog

logger = structlog.get_logger()

# Prometheus metrics
REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])
AI_GENERATION_REQUESTS = Counter('ai_generation_requests_total', 'Total AI generation requests', ['type', 'status'])
QUESTIONS_GENERATED = Counter('questions_generated_total', 'Questions produced by the generator', ['type'])
QUIZ_SCORES = Histogram(
    'quiz_score_ratio', 'Fraction of questions answered correctly per scored attempt',
    buckets=(0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
)


class HealthChecker:
    def __init__(self, store, generator_configured=lambda: False):
        self.start_time = time.time()
        self.store = store
        self.generator_configured = generator_configured

    def check_store(self) -> dict:
        """Check quiz storage is reachable"""
        try:
            quizzes = self.store.list_quizzes()
            return {
                "status": "healthy",
                "message": "Quiz store reachable",
                "quizzes_count": len(quizzes)
            }
        except Exception as e:
            logger.error(f"Store health check failed: {e}")
            return {
                "status": "unhealthy",
                "message": f"Quiz store failed: {str(e)}"
            }

    def check_ai_service(self) -> dict:
        """Report whether an AI client is configured (no request is made)"""
        if self.generator_configured():
            return {"status": "healthy", "message": "AI service configured"}
        return {"status": "degraded", "message": "OPENAI_API_KEY not set; generation unavailable"}

    def get_system_metrics(self) -> dict:
        """Get system resource metrics"""
        try:
            memory = psutil.virtual_memory()
            disk = psutil.disk_usage('/')

            return {
                "cpu_percent": psutil.cpu_percent(interval=None),
                "memory_percent": memory.percent,
                "memory_available_gb": round(memory.available / (1024**3), 2),
                "disk_percent": disk.percent,
                "uptime_seconds": time.time() - self.start_time
            }
        except Exception as e:
            logger.error(f"System metrics collection failed: {e}")
            return {"error": str(e)}

    def get_health_status(self) -> dict:
        """Get overall health status"""
        checks = {
            "store": self.check_store(),
            "ai_service": self.check_ai_service(),
        }

        unhealthy_checks = [name for name, check in checks.items() if check["status"] == "unhealthy"]
        overall_status = "healthy" if not unhealthy_checks else "unhealthy"

        return {
            "status": overall_status,
            "timestamp": time.time(),
            "checks": checks,
            "system_metrics": self.get_system_metrics(),
            "unhealthy_components": unhealthy_checks
        }


def get_metrics():
    """Get Prometheus metrics"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
