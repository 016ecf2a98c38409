"""
In-memory analytics for the intent classifier
Counts queries per intent, running average confidence, recent response
times, errors and how often the bot fell back to keyword rules.
"""

import logging
from collections import Counter, deque
from typing import Dict, Optional

logger = logging.getLogger(__name__)

RESPONSE_TIME_WINDOW = 100


class NLPAnalytics:
    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.total_queries = 0
        self.intent_distribution: Counter = Counter()
        self.average_confidence = 0.0
        self.response_times = deque(maxlen=RESPONSE_TIME_WINDOW)
        self.errors = 0
        self.fallbacks_used = 0

    def track(self, intent: Optional[str], confidence: float, response_time_ms: float, error: bool = False):
        """Record one classification attempt"""
        if not self.enabled:
            return

        self.total_queries += 1
        if intent:
            self.intent_distribution[intent] += 1

        # Running mean over every tracked query
        self.average_confidence += (confidence - self.average_confidence) / self.total_queries
        self.response_times.append(response_time_ms)

        if error:
            self.errors += 1

    def record_fallback(self):
        if self.enabled:
            self.fallbacks_used += 1

    def summary(self) -> Dict:
        times = list(self.response_times)
        avg_time = sum(times) / len(times) if times else 0.0
        return {
            "enabled": self.enabled,
            "total_queries": self.total_queries,
            "intent_distribution": dict(self.intent_distribution),
            "average_confidence": round(self.average_confidence, 4),
            "average_response_time_ms": round(avg_time, 2),
            "recent_response_times_ms": times,
            "errors": self.errors,
            "fallbacks_used": self.fallbacks_used
        }
