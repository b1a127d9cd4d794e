import logging
import sys
from pathlib import Path

import pytest

# Make the package and the shared fakes importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
TESTS = Path(__file__).resolve().parent
for path in (ROOT, TESTS):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


@pytest.fixture
def logger():
    log = logging.getLogger("maps_business_finder.tests")
    log.setLevel(logging.DEBUG)
    return log


@pytest.fixture
def listing_rows():
    """Three result containers as read by the in-page script: two rated, one bare."""
    return [
        {
            "name": "Pizzaria Bella",
            "rating": "4,7",
            "reviews": "(1.234)",
            "link": "https://www.google.com/maps/place/Pizzaria+Bella/data=!4m7!3m6!8m2!3d-23.5614!4d-46.6559",
            "address": "· Rua das Flores, 123",
        },
        {
            "name": "Cantina Roma",
            "rating": "4,2",
            "reviews": "(85)",
            "link": "https://www.google.com/maps/place/Cantina+Roma/@-23.5489,-46.6388,17z",
            "address": "· Av. Paulista, 900",
        },
        {
            "name": "Loja Sem Nota",
            "rating": "",
            "reviews": "",
            "link": "https://www.google.com/maps/place/Loja+Sem+Nota",
            "address": "· (11) 3456-7890",
        },
    ]
