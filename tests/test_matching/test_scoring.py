"""Tests for tiered keyword-product scoring."""

import pytest

from trend_tracker.matching.brands import DEFAULT_BRAND_KEYWORDS
from trend_tracker.matching.schemas import MatchConfidence, MatchType, Product
from trend_tracker.matching.service import find_brand, token_overlap, tokenize


class TestTiers:
    """First applicable tier decides score, type and confidence."""

    def test_exact(self, matcher, catalog):
        result = matcher.match_score("아이폰 16", catalog["iphone_exact"])
        assert result.score == 100.0
        assert result.match_type is MatchType.EXACT
        assert result.confidence is MatchConfidence.HIGH

    def test_exact_wins_over_later_tiers(self, matcher):
        # Would also qualify for partial, brand and category tiers
        p = Product(id=1, name="삼성 갤럭시", normalized_name="삼성갤럭시")
        result = matcher.match_score("삼성 갤럭시", p)
        assert result.match_type is MatchType.EXACT
        assert result.score == 100.0

    def test_similarity_high(self, matcher, catalog):
        result = matcher.match_score("iPhone 16", catalog["iphone_16e"])
        assert result.match_type is MatchType.SIMILARITY
        assert result.confidence is MatchConfidence.HIGH
        # 60 + (0.97778 - 0.85) * 233.33
        assert result.score == pytest.approx(89.81, abs=0.01)

    def test_similarity_medium(self, matcher):
        # Jaro 5/6, four-char prefix: Jaro-Winkler 0.9
        p = Product(id=1, name="abcdefxy", normalized_name="abcdefxy")
        result = matcher.match_score("abcdefgh", p)
        assert result.match_type is MatchType.SIMILARITY
        assert result.confidence is MatchConfidence.MEDIUM
        assert result.score == pytest.approx(71.67, abs=0.01)

    def test_similarity_capped_at_95(self, matcher):
        p = Product(id=1, name="x", normalized_name="iphone16")
        result = matcher.match_score("iPhone 16!", p)
        # Normalizes to the same key, so exact
        assert result.score == 100.0
        near = Product(id=2, name="x", normalized_name="iphone16pro")
        assert matcher.match_score("iPhone 16", near).score <= 95.0

    def test_partial_product_contains_keyword(self, matcher, catalog):
        result = matcher.match_score("에어팟", catalog["airpods"])
        assert result.match_type is MatchType.PARTIAL
        # ratio 3/9
        assert result.score == pytest.approx(60.0)
        assert result.confidence is MatchConfidence.MEDIUM

    def test_partial_keyword_contains_product(self, matcher, catalog):
        result = matcher.match_score("다이슨 에어랩 할인", catalog["airwrap"])
        assert result.match_type is MatchType.PARTIAL
        # ratio 3/10
        assert result.score == pytest.approx(52.5)
        assert result.confidence is MatchConfidence.LOW

    def test_brand(self, matcher, catalog):
        result = matcher.match_score("삼성 냉장고", catalog["bespoke"])
        assert result.match_type is MatchType.BRAND
        # token overlap 1/4
        assert result.score == pytest.approx(35.0)
        assert result.confidence is MatchConfidence.LOW

    def test_brand_mismatch_falls_to_category(self, matcher, catalog):
        result = matcher.match_score("삼성 냉장고", catalog["dios"])
        assert result.match_type is MatchType.CATEGORY
        assert result.score == pytest.approx(25.0)
        assert result.confidence is MatchConfidence.LOW

    def test_category(self, matcher, catalog):
        result = matcher.match_score("red shoes", catalog["shoes"])
        assert result.match_type is MatchType.CATEGORY
        # token overlap 2/4
        assert result.score == pytest.approx(30.0)

    def test_no_match(self, matcher, catalog):
        assert matcher.match_score("날씨", catalog["shoes"]) is None

    @pytest.mark.parametrize("keyword", ["", "   ", "!!"])
    def test_blank_keyword(self, matcher, catalog, keyword):
        assert matcher.match_score(keyword, catalog["iphone_exact"]) is None

    def test_scores_have_two_decimals(self, matcher, catalog):
        for p in catalog.values():
            result = matcher.match_score("애플 아이폰 16 프로", p)
            if result is not None:
                assert result.score == round(result.score, 2)
                assert 0 <= result.score <= 100


class TestTokenHelpers:
    def test_tokenize(self):
        assert tokenize("Galaxy S25-Ultra_512GB a") == ["galaxy", "s25", "ultra", "512gb"]

    def test_overlap_is_jaccard(self):
        assert token_overlap(["a1", "b2"], ["b2", "c3"]) == pytest.approx(1 / 3)

    def test_overlap_ignores_duplicates(self):
        assert token_overlap(["a1", "a1"], ["a1"]) == 1.0

    def test_overlap_empty(self):
        assert token_overlap([], ["a1"]) == 0.0


class TestFindBrand:
    def test_category_checked_first(self):
        assert find_brand("맥 다이슨 세트", DEFAULT_BRAND_KEYWORDS, "beauty") == "맥"
        assert find_brand("맥 다이슨 세트", DEFAULT_BRAND_KEYWORDS) == "다이슨"

    def test_case_insensitive(self):
        assert find_brand("SAMSUNG Galaxy", DEFAULT_BRAND_KEYWORDS, "electronics") == "samsung"

    def test_unknown_category_falls_back(self):
        assert find_brand("농심 신라면", DEFAULT_BRAND_KEYWORDS, "toys") == "농심"

    def test_no_brand(self):
        assert find_brand("오늘 날씨", DEFAULT_BRAND_KEYWORDS) is None

    def test_dictionary_is_immutable(self):
        with pytest.raises(TypeError):
            DEFAULT_BRAND_KEYWORDS["toys"] = ("레고",)
