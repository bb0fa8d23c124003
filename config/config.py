"""
Configuration file for the PakWheels used-car crawler.
Contains marketplace constants, crawl tuning and storage settings.
"""
from dotenv import load_dotenv
import os
from pathlib import Path

# Load environment variables from config folder
config_path = Path(os.path.dirname(__file__)) / '.env'
load_dotenv(dotenv_path=config_path)

# Application Configuration
DEBUG = os.getenv('DEBUG', 'false').lower() == 'true'

# PakWheels Marketplace Configuration
PAKWHEELS_BASE_URL = "https://www.pakwheels.com"
USED_CARS_PATH = "/used-cars"
DEFAULT_CURRENCY = "PKR"

# Search input defaults (results_wanted / max_pages are coerced to >= 1)
DEFAULT_RESULTS_WANTED = 100
DEFAULT_MAX_PAGES = 20

# Listing page markup
LISTING_SELECTOR = "li.classified-listing"

# Substrings (lower case) that mark an anti-bot interstitial instead of a result page
BLOCK_INDICATORS = ["captcha", "blocked", "access denied", "robot"]

# Batched output
BATCH_SIZE = int(os.getenv('BATCH_SIZE', '25'))

# Crawl tuning
CRAWL_CONFIG = {
    'max_concurrency': int(os.getenv('MAX_CONCURRENCY', '5')),  # Pages in flight at once
    'max_request_retries': int(os.getenv('MAX_REQUEST_RETRIES', '3')),  # Retries per URL after the first attempt
    'request_timeout': float(os.getenv('REQUEST_TIMEOUT', '60')),  # Seconds
    'min_delay': float(os.getenv('MIN_REQUEST_DELAY', '1.0')),  # Random pause before each fetch
    'max_delay': float(os.getenv('MAX_REQUEST_DELAY', '3.0')),
    'max_sessions': int(os.getenv('MAX_SESSIONS', '20')),  # Identities that may be created per run
    'verify_ssl': os.getenv('VERIFY_SSL', 'true').lower() == 'true'
}

# Proxy Configuration
PROXY_CONFIG = {
    'config_path': os.getenv('PROXY_CONFIG_PATH', 'config/proxies.json'),
    'archive_path': os.getenv('PROXY_ARCHIVE_PATH', 'archive'),  # Blacklisted IPs are stored here as <ip>.txt
    'rotation_strategy': os.getenv('PROXY_ROTATION_STRATEGY', 'round_robin')
}

# Webshare Proxy API Configuration
WEBSHARE_API_TOKEN = os.getenv('WEBSHARE_API_TOKEN') or os.getenv('WEBSHARE_API_KEY')
WEBSHARE_API_BASE_URL = "https://proxy.webshare.io/api/v2"
WEBSHARE_PROXY_CONFIG = {
    'api_timeout': int(os.getenv('WEBSHARE_API_TIMEOUT', '30')),  # API request timeout in seconds
    'max_proxies': int(os.getenv('MAX_PROXIES', '100'))  # Maximum number of proxies to fetch
}

# Supabase Configuration (optional output sink)
SUPABASE_URL = os.getenv('SUPABASE_URL')
SUPABASE_KEY = os.getenv('SUPABASE_KEY')
LISTINGS_TABLE = os.getenv('LISTINGS_TABLE', 'used_car_listings')

# Output Configuration
OUTPUT_CONFIG = {
    'format': os.getenv('OUTPUT_FORMAT', 'jsonl'),  # jsonl | csv | supabase
    'output_dir': os.getenv('OUTPUT_DIR', 'data'),
    'log_dir': os.getenv('LOG_DIR', 'logs')
}
