import logging
from typing import List, Optional

from supabase import create_client, Client

from config.config import LISTINGS_TABLE, SUPABASE_KEY, SUPABASE_URL
from src.errors import ConfigError
from src.models import ListingRecord

logger = logging.getLogger(__name__)


class SupabaseStorage:
    """Append-only listing sink backed by a Supabase table"""

    def __init__(self, table_name: str = LISTINGS_TABLE, client: Optional[Client] = None):
        """Initialize Supabase connection"""
        if client is None:
            if not SUPABASE_URL or not SUPABASE_KEY:
                raise ConfigError("Supabase credentials not found in environment variables. Please set SUPABASE_URL and SUPABASE_KEY.")
            client = create_client(SUPABASE_URL, SUPABASE_KEY)

        self.supabase: Client = client
        self.table_name = table_name
        logger.info(f"Supabase client initialized for table: {table_name}")

    def push_batch(self, records: List[ListingRecord]):
        """Insert one batch of listings"""
        rows = [r.to_dict() for r in records]
        response = self.supabase.table(self.table_name).insert(rows).execute()

        if getattr(response, 'error', None):
            raise RuntimeError(f"Batch insert failed: {response.error}")

        logger.debug(f"Inserted {len(rows)} listings into {self.table_name}")
