"""Result-page builders and a fake fetch client shared by the tests."""
import json
from typing import Dict, List, Optional, Union

from services.network_requests import FetchResult
from src.storage import MemorySink

BASE = "https://www.pakwheels.com"


def listing_html(i: int, price: str = "PKR 12.5 lacs", href: Optional[str] = None,
                 json_ld: Optional[dict] = None, featured: bool = False,
                 specs: Optional[List[str]] = None) -> str:
    """Markup of one result card, shaped like a PakWheels search result."""
    href = f"/used-cars/toyota-corolla-2018-for-sale-in-lahore-{i}" if href is None else href
    specs = ["2018", "45,000 km", "Petrol", "1300 cc", "Manual"] if specs is None else specs
    spec_items = "".join(f"<li>{s}</li>" for s in specs)
    script = ""
    if json_ld is not None:
        script = f'<script type="application/ld+json">{json.dumps(json_ld)}</script>'
    css = "classified-listing featured-listing" if featured else "classified-listing"
    return f"""
    <li class="{css}">
      {script}
      <div class="img-box"><img src="/images/placeholder.png" data-original="https://cache1.pakwheels.com/ad_pictures/{i}.jpg?v=3"></div>
      <a class="car-name ad-detail-path" href="{href}"><h3>Toyota Corolla {i}</h3></a>
      <div class="price-details">{price}</div>
      <ul class="search-vehicle-info"><li>Lahore</li><li>Punjab</li></ul>
      <ul class="search-vehicle-info-2">{spec_items}</ul>
      <div class="search-bottom"><div class="pull-right">Updated 2 hours ago</div></div>
    </li>"""


def results_page(cards: List[str], next_href: Optional[str] = None) -> str:
    pagination = ""
    if next_href:
        pagination = f'<ul class="pagination"><li class="next_page"><a href="{next_href}">Next</a></li></ul>'
    return f"<html><body><ul class=\"search-results\">{''.join(cards)}</ul>{pagination}</body></html>"


def block_page() -> str:
    return "<html><body><h1>Please complete the CAPTCHA to continue</h1></body></html>"


class FakeClient:
    """
    Stands in for PakWheelsClient.

    ``pages`` maps a URL to a body, an exception to raise, or a list of those
    consumed one per request (the last entry repeats).
    """

    def __init__(self, pages: Dict[str, Union[str, Exception, list]]):
        self.pages = pages
        self.calls = []

    def fetch(self, url, identity, referer=None):
        self.calls.append((url, identity.identity_id, referer))
        if url not in self.pages:
            raise AssertionError(f"unexpected fetch of {url}")
        response = self.pages[url]
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        return FetchResult(url=url, status_code=200, text=response)

    @property
    def urls(self):
        return [c[0] for c in self.calls]




class FlakySink(MemorySink):
    """Fails the first ``failures`` pushes, then behaves like MemorySink."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def push_batch(self, records):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise IOError("disk full")
        super().push_batch(records)
