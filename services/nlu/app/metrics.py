from typing import Optional

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# NLU engine metrics
extract_requests_total = Counter('nlu_extract_requests_total', 'Total NLU extractions', ['status'])
extract_duration_seconds = Histogram('nlu_extract_duration_seconds', 'NLU extraction duration')
intent_confidence_score = Histogram('nlu_intent_confidence_score', 'Selected intent confidence scores')
intents_detected = Counter('nlu_intents_detected_total', 'Selected intents', ['intent'])
model_sync_total = Counter('nlu_model_sync_total', 'Intent model syncs', ['action'])
mounted_bots = Gauge('nlu_mounted_bots', 'Number of bots with a mounted NLU engine')


def record_extraction(status: str, duration: float, confidence: Optional[float] = None, intent: Optional[str] = None):
    """Record extraction metrics"""
    extract_requests_total.labels(status=status).inc()
    extract_duration_seconds.observe(duration)
    if confidence is not None:
        intent_confidence_score.observe(confidence)
    if intent:
        intents_detected.labels(intent=intent).inc()


def record_sync(action: str):
    model_sync_total.labels(action=action).inc()


async def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
