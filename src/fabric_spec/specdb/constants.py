from __future__ import annotations

from typing import Dict, Tuple

from ..domain.models import SchemaGeneration

# Placeholder for a field the model could not read; review flags these.
MISSING_SENTINEL = "인식 불가 (직접 입력 필요)"

DEFAULT_GENERATION = SchemaGeneration.STRUCTURED

# Ordered fields feeding the dedup key, per generation. Structured paths are
# dotted into the nested payload.
KEY_FIELDS: Dict[SchemaGeneration, Tuple[str, ...]] = {
    SchemaGeneration.FLAT: ("art_no", "mill_name", "spec"),
    SchemaGeneration.FLAT_SPLIT_WEIGHT: ("art_no", "mill_name", "weight_value"),
    SchemaGeneration.STRUCTURED: ("basic_info.art_no", "basic_info.fabric_name", "basic_info.mill_name"),
}

# Flat columns each flat generation fills.
FLAT_GENERATION_FIELDS: Dict[SchemaGeneration, Tuple[str, ...]] = {
    SchemaGeneration.FLAT: (
        "date", "art_no", "mill_name", "composition", "spec", "finishing", "weight", "width", "price",
    ),
    SchemaGeneration.FLAT_SPLIT_WEIGHT: (
        "date", "art_no", "mill_name", "composition", "spec", "finishing",
        "weight_value", "weight_unit", "width", "price",
    ),
}

BASIC_INFO_FIELDS: Tuple[str, ...] = ("art_no", "fabric_name", "mill_name", "fabric_type_explanation")

# Keys the browser attaches to the transient payload; never persisted.
TRANSIENT_KEYS: Tuple[str, ...] = ("key", "image_url")

FIELD_LABELS: Dict[str, str] = {
    "date": "날짜",
    "art_no": "원단 코드 (Art No.)",
    "name": "원단 이름",
    "mill_name": "제조사명",
    "composition": "혼용률",
    "spec": "사양 (Spec)",
    "finishing": "후가공",
    "weight": "중량",
    "weight_value": "중량 값",
    "weight_unit": "중량 단위",
    "width": "폭",
    "price": "단가",
    "fabric_type_explanation": "원단 종류 설명",
    "expert_summary": "전문가 종합 요약",
}

# Display labels for the inventory service's short field codes.
MATERIAL_LABELS: Dict[str, str] = {
    "erdat": "생성일",
    "syscd": "시스템코드",
    "loekz": "삭제표시",
    "mtrcd": "소재코드",
    "lgrop": "대분류코드",
    "lgropNm": "대분류명",
    "mgrop": "중분류코드",
    "mgropNm": "중분류명",
    "sgrop": "소분류코드",
    "sgropNm": "소분류명",
    "dsgnm": "디자인명",
    "ingre1": "성분1 코드",
    "ingre1Nm": "성분1명",
    "ingre2": "성분2 코드",
    "ingre2Nm": "성분2명",
    "ingre3": "성분3 코드",
    "ingre3Nm": "성분3명",
    "yarncnt": "원사 수",
    "ycunit": "원사 단위",
    "ydwgt": "중량(yd)",
    "wtunit": "중량 단위",
    "org": "조직",
    "artcno": "소재번호",
    "zplifnr": "공급업체코드",
    "zproprc": "공급업체 단가",
    "zprowaers": "공급업체 통화",
    "zprcunit": "공급업체 단위",
    "zlifnr": "내부 공급업체",
    "zuntprc": "내부 단가",
    "zuntwaers": "내부 통화",
    "zchrratio": "혼용률",
    "zyarncnt": "상세 원사",
    "zdensity": "밀도",
    "zydwgt": "상세 중량",
    "zwtunit": "상세 중량 단위",
    "zorg": "상세 조직",
    "ztreatment": "후가공",
    "zpwidth": "폭",
    "backing": "백킹",
    "mainitem": "메인아이템 코드",
    "mainitemNm": "메인아이템명",
    "thickness": "두께",
    "remark": "비고",
    "purno": "발주번호",
    "cfmno": "확정번호",
    "reglnd": "등록 국가",
}

# Images above this size are downscaled before upload.
MAX_IMAGE_BYTES = 4 * 1024 * 1024
MAX_IMAGE_SIDE = 1920

# Pending reviews untouched for this long are purged on the next analysis.
PENDING_REVIEW_MAX_AGE_HOURS = 24
