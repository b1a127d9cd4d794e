"""
config.py - Configuration settings
---------------------------------
Contains all the configuration settings for the Maps business finder.
Values read from the environment can be overridden without touching code.
"""
import os

# ─────────────────── Browser ──────────────────────
HEADLESS = os.getenv("MBF_HEADLESS", "false").lower() == "true"
WINDOW_SIZE = (1366, 768)
PROFILE_DIR = os.getenv("MBF_PROFILE_DIR")  # persistent Chrome profile, optional
PAGE_LOAD_TIMEOUT = 45
SCRIPT_TIMEOUT = 20
ACCEPT_LANGUAGE = "pt-BR,pt;q=0.9,en;q=0.8"

UA_POOL = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36",
]

CHROME_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-extensions",
    "--disable-infobars",
    "--disable-notifications",
    "--disable-popup-blocking",
    "--disable-translate",
    "--disable-save-password-bubble",
    "--disable-crash-reporter",
    "--disable-breakpad",
    "--disable-component-update",
    "--disable-domain-reliability",
    "--log-level=3",
]

# ─────────────────── Navigation ───────────────────
NAVIGATION_STABILITY_DELAY = 3.0
SEARCH_SETTLE_DELAY = 2.0
EXPECTED_TITLE_MARKER = "Google Maps"
MAPS_BASE_URL = "https://www.google.com/maps"

# ─────────────────── Scrolling ────────────────────
MAX_SCROLL_ATTEMPTS = 50
SCROLL_AMOUNT = 1000          # wheel delta in px
SCROLL_DELAY = 2.0            # settle after each wheel tick
POINTER_PAUSE = 0.5           # hover before the wheel event
AGGRESSIVE_SCROLL_THRESHOLD = 3
AGGRESSIVE_DELAY_MULTIPLIER = 2

SCROLL_CONTAINER_PRIMARY = 'div[role="feed"]'
SCROLL_CONTAINER_FALLBACKS = [
    'div.m6QErb[aria-label]',
    'div.m6QErb.DxyBCb',
    '[role="main"] div.m6QErb',
]

END_MESSAGE_XPATH = (
    "//span[contains(text(), 'final da lista') "
    "or contains(text(), 'chegou ao final') "
    "or contains(text(), 'end of the list')]"
)
END_MESSAGE_CSS_SELECTORS = [
    "span.HlvSq",
    "div.PbZDve",
    "div.m6QErb p.fontBodyMedium",
]
END_PHRASES = [
    "Você chegou ao final da lista",
    "chegou ao final",
    "final da lista",
    "You've reached the end of the list",
    "you've reached the end of the list",
    "end of the list",
]

# ─────────────────── Orchestration ────────────────
CELL_PAUSE = 2.0
LOCATION_PAUSE = 3.0
DEFAULT_SEARCH_RADIUS = 10
DEFAULT_EXPORT_FORMATS = ["json", "csv"]

# radius (km) -> zoom levels, tightest first
ZOOM_LEVELS_BY_RADIUS = {
    2: [15],
    5: [15, 14],
    10: [15, 14, 13],
    20: [15, 14, 13, 12],
    50: [15, 14, 13, 12, 11],
    100: [15, 14, 13, 12, 11, 10],
}
DEFAULT_ZOOM_LEVELS = [15, 14, 13]

# ─────────────────── Extraction ───────────────────
RESULT_LINK_XPATH = "//a[@aria-label and starts-with(@href,'http')]/ancestor::div[1]"
HOURS_MARKERS = ["Abre", "Fechado", "Fecha", "Open", "Closed", "Closes", "Opens"]
LIST_SEPARATOR = "·"
ADDRESS_UNAVAILABLE = "unavailable"
SOURCE_NAME = "Google Maps"
MAX_SEARCH_TERM_LENGTH = 200

# ─────────────────── Scoring ──────────────────────
DEFAULT_SCORING_STRATEGY = "log_tenth"

# ─────────────────── Output ───────────────────────
OUTPUT_DIR = os.getenv("MBF_OUTPUT_DIR", "results")
SCREENSHOT_DIR = os.getenv("MBF_SCREENSHOT_DIR", "screenshots")
LOG_DIR = os.path.join("logs", "maps_business_finder")

# ─────────────────── Coordinate lookup ────────────
GEOCODER_URL = "https://photon.komoot.io/api/"
GEOCODER_TIMEOUT = 10
GEOCODER_LIMIT = 5
