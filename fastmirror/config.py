"""Constants and defaults for fastmirror."""

# Default selection settings (milliseconds unless noted)
DEFAULT_TIMEOUT_MS = 3000
PRELIMINARY_TIMEOUT_MS = 2000
FINAL_TIMEOUT_MS = 3000
DEFAULT_TESTS_PER_ENDPOINT = 3
DEFAULT_MIN_CANDIDATES = 2
DEFAULT_MAX_CANDIDATES = 3
DEFAULT_PROBE_DELAY_MS = 100
DEFAULT_REDIRECT_DELAY_MS = 1000

# Concurrency pool bounds for the hardware-derived limit
MIN_CONCURRENCY = 2
MAX_CONCURRENCY = 6

# Per-endpoint sampling never runs more than this many probes at once
MAX_SAMPLE_CONCURRENCY = 3

# Adaptive candidate threshold: (upper bound of min latency, multiplier)
THRESHOLD_BANDS = [
    (100.0, 1.3),
    (300.0, 1.5),
]
THRESHOLD_FALLBACK_MULTIPLIER = 2.0

# Samples further than this fraction of the centre are outliers
OUTLIER_DEVIATION = 0.5

# Composite score
LATENCY_WEIGHT = 0.4
LOAD_TIME_WEIGHT = 0.6
MAX_STABILITY_FACTOR = 0.5

# Latency colour bands (milliseconds)
LATENCY_BANDS = [
    (100.0, "excellent", "green"),
    (200.0, "good", "bright_green"),
    (500.0, "average", "yellow"),
    (1000.0, "slow", "dark_orange"),
]
VERY_SLOW_STYLE = ("very slow", "red")

# Cache-busting query parameter appended by the HTTP techniques
CACHE_BUST_PARAM = "_t"

# Path requested by the image-load technique
IMAGE_PROBE_PATH = "/favicon.ico"

# User agent for HTTP requests
USER_AGENT = "fastmirror/0.1.0"

# Environment variable holding the mirror list
URLS_ENV_VAR = "FASTMIRROR_URLS"

# Used when no mirror list is supplied at all
DEFAULT_URLS = [
    "https://blog.115694.xyz#Cloudflare CDN",
    "https://fastly.blog.115694.xyz#Fastly CDN",
    "https://gcore.blog.115694.xyz#Gcore CDN",
    "https://vercel.blog.115694.xyz#Vercel CDN",
    "https://rin-blog-f0y.pages.dev#Backup 1",
    "https://rin-blog-weld.vercel.app#Backup 2",
]
