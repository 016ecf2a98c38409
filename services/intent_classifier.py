"""
Intent classifier for the WhatsApp customer-service bot.
Character n-gram TF-IDF model (scikit-learn) over a catalog of example
utterances; confidence is the cosine similarity to the closest example.
Entities come from synonym dictionaries and two regex extractors.
"""

import asyncio
import itertools
import logging
import re
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Tuple

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import linear_kernel

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    GREETING = "greeting"
    ORDER = "order"
    MENU = "menu"
    DELIVERY = "delivery"
    PAYMENT = "payment"
    HELP = "help"
    COMPLAINT = "complaint"
    CUSTOMER_LOOKUP = "customer_lookup"
    UNKNOWN = "unknown"

    @classmethod
    def from_label(cls, label) -> "Intent":
        try:
            return cls(label)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Quantity:
    number: int
    unit: str = "unit"


@dataclass
class Entities:
    products: List[str] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)
    phone_numbers: List[str] = field(default_factory=list)
    quantities: List[Quantity] = field(default_factory=list)
    urgency: str = "low"


@dataclass
class Sentiment:
    label: str = "neutral"
    score: float = 0.0


FALLBACK_ANSWER = "I understand you need assistance. How can I help you?"


@dataclass
class IntentResult:
    intent: Intent = Intent.UNKNOWN
    confidence: float = 0.0
    entities: Entities = field(default_factory=Entities)
    sentiment: Sentiment = field(default_factory=Sentiment)
    answer: str = FALLBACK_ANSWER
    utterance: str = ""

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["intent"] = self.intent.value
        return data


UTTERANCES = {
    Intent.GREETING: [
        "hello", "hi", "hey", "good morning", "good afternoon", "good evening",
        "salaam", "salam", "hi there", "hey there", "greetings", "howdy",
        "what's up", "yo", "morning", "evening", "afternoon"
    ],
    Intent.ORDER: [
        "I want to order %product%", "I need %product%", "Can I buy %product%",
        "I would like to purchase %product%", "Order %product%", "Get me %product%",
        "I want %quantity% %product%", "Buy %product%", "I need %quantity% bottles",
        "Order water", "I want water delivery", "Book water bottles",
        "Can I get water", "I need water for office", "Water delivery please",
        "I want to buy water", "Need water supply", "Water bottles needed",
        "Order bottles for home", "Get water delivered", "office water supply",
        "home water delivery", "bulk water order", "emergency water needed"
    ],
    Intent.MENU: [
        "show menu", "what products", "price list", "what do you sell",
        "show products", "what items", "catalog", "available products",
        "what can I buy", "product list", "services", "offerings",
        "what are your prices", "cost of products", "pricing",
        "show me options", "what do you have", "menu please",
        "product catalog", "what's available", "options available",
        "cheapest option", "best deal", "most economical"
    ],
    Intent.DELIVERY: [
        "delivery information", "when can you deliver", "delivery areas",
        "do you deliver to %location%", "delivery schedule", "how long delivery",
        "when will it arrive", "delivery time", "shipping info",
        "can you deliver", "delivery charges", "delivery fee",
        "delivery cost", "shipping cost", "delivery timing",
        "where do you deliver", "delivery zones", "same day delivery",
        "next day delivery", "urgent delivery", "fast delivery",
        "delivery to %location%"
    ],
    Intent.PAYMENT: [
        "payment methods", "how to pay", "payment options", "cash payment",
        "card payment", "bank transfer", "installment", "pay later",
        "payment info", "cost", "price", "how much", "total cost",
        "payment plans", "financing", "credit options", "bnpl",
        "buy now pay later", "installments", "what payment methods",
        "how much does it cost", "final price", "payment terms"
    ],
    Intent.HELP: [
        "help", "I need help", "assist me", "support", "customer service",
        "I am confused", "I don't understand", "guide me", "how to",
        "what can you do", "help me please", "assistance needed",
        "can you help", "I'm lost", "don't know what to do",
        "customer support", "need assistance", "confused", "stuck"
    ],
    Intent.COMPLAINT: [
        "I have a problem", "this is terrible", "very disappointed",
        "poor service", "bad experience", "not satisfied", "complaint",
        "issue with order", "problem with delivery", "wrong product",
        "late delivery", "missing bottles", "damaged product",
        "not happy", "unsatisfied", "terrible service", "awful",
        "bad quality", "wrong order", "missing items", "broken",
        "delivery problem", "order issue", "service problem"
    ],
    Intent.CUSTOMER_LOOKUP: [
        "my number is %phone%", "customer %phone%", "%phone%",
        "my account", "check my account", "account details",
        "customer details", "my information", "account info",
        "find my account", "lookup account", "my profile"
    ],
}

ANSWERS = {
    Intent.GREETING: "Hello! Welcome to our premium water delivery service!",
    Intent.ORDER: "I'd be happy to help you place an order! What product would you like?",
    Intent.MENU: "Let me show you our complete product catalog!",
    Intent.DELIVERY: "Here's information about our delivery service!",
    Intent.PAYMENT: "Here are our available payment options!",
    Intent.HELP: "I'm here to help! What do you need assistance with?",
    Intent.COMPLAINT: "I'm sorry to hear about the issue. Let me help resolve this!",
    Intent.CUSTOMER_LOOKUP: "Let me look up your customer information!",
}

PRODUCT_ENTITIES = {
    "bottle": [
        "bottle", "bottles", "water", "water bottle", "5 gallon", "gallon",
        "aqua", "mineral water", "drinking water", "bottled water"
    ],
    "dispenser": [
        "dispenser", "water dispenser", "cooler", "water cooler", "machine",
        "tap", "faucet", "spout", "table top dispenser"
    ],
    "coupon": [
        "coupon", "coupon book", "package", "deal", "book",
        "bulk package", "bulk deal", "subscription"
    ],
}

LOCATION_ENTITIES = {
    "dubai": ["dubai", "dxb", "dubai emirate", "dubai city", "marina", "downtown", "jbr", "jumeirah"],
    "sharjah": ["sharjah", "shj", "sharjah emirate", "sharjah city"],
    "ajman": ["ajman", "ajm", "ajman emirate", "ajman city"],
}

URGENCY_ENTITIES = {
    "high": ["urgent", "asap", "immediately", "now", "today", "emergency", "quick", "fast", "rush"],
    "medium": ["soon", "tomorrow", "this week"],
}

PHONE_PATTERN = re.compile(r"(\+?971|0)?[0-9]{8,9}")
QUANTITY_PATTERN = re.compile(r"\b(\d{1,6})\s*(bottles?|pieces?|units?|gallons?)?\b", re.I)

# Values substituted for %placeholders% when the catalog is expanded
PLACEHOLDER_VALUES = {
    "%product%": ["water", "bottles", "dispenser", "water cooler", "coupon book"],
    "%quantity%": ["2", "5", "10"],
    "%location%": ["dubai", "sharjah", "ajman"],
    "%phone%": ["0501234567", "+971501234567"],
}

POSITIVE_WORDS = {
    "good", "great", "excellent", "thanks", "thank", "happy", "love", "perfect",
    "amazing", "awesome", "satisfied", "nice", "wonderful", "best"
}
NEGATIVE_WORDS = {
    "bad", "terrible", "awful", "poor", "disappointed", "angry", "late", "broken",
    "damaged", "wrong", "missing", "worst", "unhappy", "unsatisfied", "problem",
    "issue", "complaint", "horrible", "rude", "dirty", "never"
}
NEGATIONS = {"not", "no", "don't", "didn't", "isn't", "wasn't"}


def expand_template(template: str) -> List[str]:
    """Replace every %placeholder% with each of its sample values"""
    placeholders = [p for p in PLACEHOLDER_VALUES if p in template]
    if not placeholders:
        return [template]

    expanded = []
    for values in itertools.product(*(PLACEHOLDER_VALUES[p] for p in placeholders)):
        utterance = template
        for placeholder, value in zip(placeholders, values):
            utterance = utterance.replace(placeholder, value)
        expanded.append(utterance)
    return expanded


def _match_dictionary(text: str, dictionary: Dict[str, List[str]]) -> List[str]:
    """
    Canonical values whose synonyms occur in the text, in order of appearance.
    Longer synonyms claim their span first, so "water cooler" is a cooler and
    not also water.
    """
    candidates = []
    for canonical, synonyms in dictionary.items():
        for synonym in synonyms:
            for match in re.finditer(rf"\b{re.escape(synonym)}\b", text):
                candidates.append((match.start(), match.end(), canonical))

    candidates.sort(key=lambda c: (c[0] - c[1], c[0]))
    claimed = []
    for start, end, canonical in candidates:
        if any(start < c_end and c_start < end for c_start, c_end, _ in claimed):
            continue
        claimed.append((start, end, canonical))

    found = []
    for _, _, canonical in sorted(claimed):
        if canonical not in found:
            found.append(canonical)
    return found


class IntentClassifier:
    """Trainable intent classifier with entity extraction"""

    def __init__(self):
        self._documents: List[Tuple[str, Intent]] = []
        self.product_entities: Dict[str, List[str]] = {}
        self.location_entities: Dict[str, List[str]] = {}
        self.urgency_entities: Dict[str, List[str]] = {}
        self.answers: Dict[Intent, str] = {}
        self._model = None
        self.is_trained = False
        self._setup_training_data()

    def _setup_training_data(self):
        for intent, utterances in UTTERANCES.items():
            for utterance in utterances:
                self.add_document(utterance, intent)

        for canonical, synonyms in PRODUCT_ENTITIES.items():
            self.add_named_entity("product", canonical, synonyms)
        for canonical, synonyms in LOCATION_ENTITIES.items():
            self.add_named_entity("location", canonical, synonyms)
        for canonical, synonyms in URGENCY_ENTITIES.items():
            self.add_named_entity("urgency", canonical, synonyms)

        for intent, answer in ANSWERS.items():
            self.answers[intent] = answer

    def add_document(self, utterance: str, intent: Intent):
        for expanded in expand_template(utterance):
            self._documents.append((expanded.lower(), intent))

    def add_named_entity(self, entity: str, canonical: str, synonyms: List[str]):
        dictionaries = {
            "product": self.product_entities,
            "location": self.location_entities,
            "urgency": self.urgency_entities,
        }
        dictionaries[entity][canonical] = [s.lower() for s in synonyms]

    def _fit(self):
        texts = [text for text, _ in self._documents]
        labels = [intent for _, intent in self._documents]
        vectorizer = TfidfVectorizer(analyzer="char_wb", ngram_range=(2, 4), sublinear_tf=True)
        matrix = vectorizer.fit_transform(texts)
        return vectorizer, matrix, labels

    async def train(self):
        """One-time training; runs in a worker thread so the event loop stays free"""
        if self.is_trained:
            return

        try:
            logger.info(f"🧠 Training intent classifier on {len(self._documents)} utterances...")
            self._model = await asyncio.to_thread(self._fit)
            self.is_trained = True
            logger.info("✅ Intent classifier trained successfully")
        except Exception as e:
            logger.error(f"❌ Intent classifier training failed: {e}", exc_info=True)

    async def add_training_data(self, utterance: str, intent: str) -> bool:
        """Add an utterance at runtime and retrain"""
        parsed = Intent.from_label(intent)
        if parsed is Intent.UNKNOWN:
            logger.warning(f"Rejected training data for unknown intent '{intent}'")
            return False

        try:
            self.add_document(utterance, parsed)
            self._model = await asyncio.to_thread(self._fit)
            self.is_trained = True
            logger.info(f"✓ Added training data: '{utterance}' -> {parsed.value}")
            return True
        except Exception as e:
            logger.error(f"❌ Failed to add training data: {e}", exc_info=True)
            return False

    def fallback_result(self, text: str = "") -> IntentResult:
        return IntentResult(utterance=text or "")

    async def classify(self, text: str) -> IntentResult:
        """
        Classify a message

        Returns the degraded "unknown" result (confidence 0) before training
        has finished or when anything goes wrong; never raises.
        """
        if not self.is_trained or not text or not text.strip():
            return self.fallback_result(text)

        try:
            return await asyncio.to_thread(self._classify_sync, text)
        except Exception as e:
            logger.error(f"Intent classification error: {e}", exc_info=True)
            return self.fallback_result(text)

    def _classify_sync(self, text: str) -> IntentResult:
        vectorizer, matrix, labels = self._model
        similarities = linear_kernel(vectorizer.transform([text.lower()]), matrix).ravel()
        best = int(np.argmax(similarities))
        confidence = min(1.0, max(0.0, float(similarities[best])))
        intent = labels[best] if confidence > 0 else Intent.UNKNOWN

        return IntentResult(
            intent=intent,
            confidence=confidence,
            entities=self.extract_entities(text),
            sentiment=self.analyze_sentiment(text),
            answer=self.answers.get(intent, FALLBACK_ANSWER),
            utterance=text
        )

    def extract_entities(self, text: str) -> Entities:
        lowered = text.lower()
        entities = Entities(
            products=_match_dictionary(lowered, self.product_entities),
            locations=_match_dictionary(lowered, self.location_entities)
        )

        phone_spans = []
        for match in PHONE_PATTERN.finditer(text):
            phone = re.sub(r"\s+", "", match.group(0))
            if len(phone) >= 8 and phone not in entities.phone_numbers:
                entities.phone_numbers.append(phone)
                phone_spans.append(match.span())

        for match in QUANTITY_PATTERN.finditer(text):
            start, end = match.span()
            if any(start < p_end and p_start < end for p_start, p_end in phone_spans):
                continue
            number = int(match.group(1))
            if number <= 0:
                continue
            unit = (match.group(2) or "unit").lower().rstrip("s")
            entities.quantities.append(Quantity(number=number, unit=unit))

        urgency = _match_dictionary(lowered, self.urgency_entities)
        if "high" in urgency:
            entities.urgency = "high"
        elif "medium" in urgency:
            entities.urgency = "medium"

        return entities

    @staticmethod
    def analyze_sentiment(text: str) -> Sentiment:
        tokens = re.findall(r"[a-z']+", text.lower())
        if not tokens:
            return Sentiment()

        score = 0
        for i, token in enumerate(tokens):
            negated = i > 0 and tokens[i - 1] in NEGATIONS
            if token in POSITIVE_WORDS:
                score += -1 if negated else 1
            elif token in NEGATIVE_WORDS:
                score += 1 if negated else -1

        normalized = score / len(tokens)
        if normalized > 0:
            label = "positive"
        elif normalized < 0:
            label = "negative"
        else:
            label = "neutral"
        return Sentiment(label=label, score=round(normalized, 3))

    def get_model_stats(self) -> Dict:
        return {
            "is_trained": self.is_trained,
            "engine": "tfidf-char-ngrams",
            "languages": ["en"],
            "intents": [intent.value for intent in UTTERANCES],
            "total_documents": len(self._documents)
        }
