import os
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str) -> list:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


# ───── Chunking ─────
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", 150))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", 75))
MIN_TOKENS = int(os.getenv("MIN_TOKENS", 50))

# ───── Similarity thresholds ─────
NGRAM_SIZE = 3
COSINE_THRESHOLD = float(os.getenv("COSINE_THRESHOLD", 0.65))
NGRAM_THRESHOLD = float(os.getenv("NGRAM_THRESHOLD", 0.60))
KEYWORD_PRUNE_RATIO = float(os.getenv("KEYWORD_PRUNE_RATIO", 0.2))

# ───── Reference data ─────
REFERENCE_DATA_PATH = os.getenv("REFERENCE_DATA_PATH", "reference_database/data.txt")
REFERENCE_COSINE_THRESHOLD = float(os.getenv("REFERENCE_COSINE_THRESHOLD", 0.55))
REFERENCE_NGRAM_THRESHOLD = float(os.getenv("REFERENCE_NGRAM_THRESHOLD", 0.50))
MIN_REFERENCE_PARAGRAPH_LENGTH = 30
MIN_REFERENCE_FILE_LENGTH = 100

# ───── Web matching ─────
MIN_PARAGRAPH_LENGTH = 50
MIN_SENTENCE_LENGTH = 30
MIN_PAGE_SENTENCE_LENGTH = 20
WEB_SIMILARITY_THRESHOLD = float(os.getenv("WEB_SIMILARITY_THRESHOLD", 0.5))
SEARCH_QUERY_MAX_CHARS = 150
MAX_FETCH_WORKERS = int(os.getenv("MAX_FETCH_WORKERS", 4))

# ───── Page locator ─────
CHARS_PER_PAGE = 2000

# ───── AI heuristic ─────
SENTENCE_UNIFORMITY_WEIGHT = 15
VOCABULARY_DIVERSITY_WEIGHT = 20
DIVERSITY_BASELINE = float(os.getenv("DIVERSITY_BASELINE", 1.8))
DIVERSITY_SPAN = float(os.getenv("DIVERSITY_SPAN", 0.6))
MIN_SENTENCES_FOR_UNIFORMITY = 5
MIN_WORDS_FOR_DIVERSITY = 50
AI_SEGMENT_MIN_SCORE = 30
SENTENCE_FLAG_RATIO = 0.5

# ───── AI fusion ─────
HEURISTIC_WEIGHT = float(os.getenv("HEURISTIC_WEIGHT", 0.25))
HF_CLASSIFIER_WEIGHT = float(os.getenv("HF_CLASSIFIER_WEIGHT", 0.4))
FUSION_CONFIDENCE_THRESHOLD = 10
SEGMENT_MERGE_GAP = 50
DEFAULT_SPAN_CONFIDENCE = 50

# ───── Processing coordinator ─────
MAX_CONCURRENT_ANALYSES = int(os.getenv("MAX_CONCURRENT_ANALYSES", 1))
JOB_HISTORY_LIMIT = int(os.getenv("JOB_HISTORY_LIMIT", 500))
MIN_CONTENT_LENGTH = 100

# ───── Result limits ─────
MAX_MATCH_RECORDS = 50
MAX_SOURCES = 20
MAX_AI_SEGMENTS = 20
MAX_MATCHED_TEXT_CHARS = 500

# ───── External providers ─────
GOOGLE_API_KEYS = _env_list("GOOGLE_API_KEYS") or _env_list("GOOGLE_API_KEY")
SEARCH_ENGINE_ID = os.getenv("SEARCH_ENGINE_ID", "")
SEARCH_RESULTS_PER_QUERY = 5
SEARCH_CACHE_TTL = int(os.getenv("SEARCH_CACHE_TTL", 3600))
SEARCH_CACHE_MAXSIZE = int(os.getenv("SEARCH_CACHE_MAXSIZE", 256))
QUOTA_COOLDOWN_SECONDS = 6 * 60 * 60
HF_TOKEN = os.getenv("HF_TOKEN", "")
HF_MODEL = os.getenv("HF_MODEL", "fakespot-ai/roberta-base-ai-text-detection-v1")
HF_MAX_CHARS = 2000
HF_FLAG_THRESHOLD = 70

REQUEST_TIMEOUT = 8
PAGE_MAX_CHARS = 5000

# ───── File support ─────
ALLOWED_EXTENSIONS = {"txt", "pdf", "docx"}
MAX_FILE_SIZE_MB = 20

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "")
