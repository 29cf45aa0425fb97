"""Shared fixtures for matching tests."""

from unittest.mock import AsyncMock

import pytest

from trend_tracker.matching.schemas import Product
from trend_tracker.matching.service import ProductMatcher


def product(product_id, name, normalized_name, category=None, is_active=True):
    return Product(
        id=product_id,
        name=name,
        normalized_name=normalized_name,
        category=category,
        is_active=is_active,
    )


@pytest.fixture
def catalog():
    """Products whose best tier against known keywords is precomputed."""
    return {
        "iphone_exact": product(1, "Apple 아이폰 16 128GB", "아이폰16", "electronics"),
        "iphone_16e": product(2, "iPhone 16e", "iphone16e", "electronics"),
        "airpods": product(3, "애플 에어팟 프로", "애플에어팟프로", "electronics"),
        "airwrap": product(4, "에어랩", "에어랩", "appliances"),
        "bespoke": product(5, "삼성 비스포크 김치냉장고", "삼성비스포크김치냉장고", "appliances"),
        "dios": product(6, "LG 디오스 냉장고", "lg디오스냉장고", "appliances"),
        "shoes": product(7, "shoes blue red sale", "shoesblueredsale", "fashion"),
    }


@pytest.fixture
def keyword_repo():
    return AsyncMock()


@pytest.fixture
def product_repo():
    return AsyncMock()


@pytest.fixture
def match_repo():
    repo = AsyncMock()
    repo.apply_matches.return_value = (0, 0)
    return repo


@pytest.fixture
def matcher(keyword_repo, product_repo, match_repo):
    return ProductMatcher(keyword_repo, product_repo, match_repo)
