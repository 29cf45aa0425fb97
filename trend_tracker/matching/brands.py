"""Default brand dictionary for the brand matching tier.

Category key -> known brand terms, in both Hangul and Latin spellings.
Lookup is case-insensitive substring containment, scanning the product's
category first and then every category in this order.
"""

from types import MappingProxyType
from typing import Mapping

DEFAULT_BRAND_KEYWORDS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "electronics": (
        "삼성", "samsung", "애플", "apple", "아이폰", "iphone", "갤럭시", "galaxy",
        "LG", "lg", "소니", "sony", "샤오미", "xiaomi", "화웨이", "huawei",
        "레노버", "lenovo", "에이수스", "asus", "델", "dell", "HP", "hp",
        "MSI", "msi", "구글", "google", "픽셀", "pixel", "원플러스", "oneplus",
        "다이슨", "dyson", "보스", "bose", "젠하이저", "sennheiser",
    ),
    "beauty": (
        "설화수", "라네즈", "이니스프리", "에뛰드", "미샤", "더페이스샵",
        "에스티로더", "랑콤", "샤넬", "디올", "맥", "나스", "로레알",
        "아모레퍼시픽", "올리브영", "클리오", "페리페라", "롬앤",
    ),
    "appliances": (
        "다이슨", "dyson", "삼성", "samsung", "LG", "lg", "필립스", "philips",
        "보쉬", "bosch", "일렉트로룩스", "electrolux", "밀레", "miele",
        "쿠첸", "쿠쿠", "cuckoo", "위니아", "대우", "신일",
    ),
    "food": (
        "농심", "오뚜기", "삼양", "CJ", "풀무원", "동원", "해태",
        "롯데", "오리온", "빙그레", "남양", "매일", "서울우유",
    ),
})
